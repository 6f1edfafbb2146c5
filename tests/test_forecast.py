"""Tests for consumption rates, runout projection and reorder recommendations."""

import os
import sys
import unittest
from datetime import date
from decimal import Decimal
from pathlib import Path

os.environ["DATABASE_URL"] = "sqlite://"

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from pydantic import ValidationError

from factories import make_company, make_component, make_location, make_sku_with_bom
from stockledger.db import reset_db
from stockledger.errors import LedgerValidationError, NotFoundError
from stockledger.models.inputs import AdjustmentInput, BuildRequest, InitialInput, TransferInput
from stockledger.models.settings import ForecastSettingsUpdate
from stockledger.services.build import record_build
from stockledger.services.forecast import (
    calculate_consumption_rate,
    calculate_reorder_recommendation,
    calculate_runout,
    get_component_forecast,
    get_component_forecasts,
    get_forecast_config,
    upsert_forecast_config,
)
from stockledger.services.transactions import record_adjustment, record_initial, record_transfer

TODAY = date(2025, 6, 30)


class TestForecastMath(unittest.TestCase):
    def test_runout_floors_days(self):
        self.assertEqual(calculate_runout(Decimal("25"), Decimal("10"), TODAY), (2, date(2025, 7, 2)))

    def test_no_consumption_means_no_runout(self):
        self.assertEqual(calculate_runout(Decimal("25"), Decimal("0"), TODAY), (None, None))

    def test_empty_stock_runs_out_today(self):
        self.assertEqual(calculate_runout(Decimal("0"), Decimal("5"), TODAY), (0, TODAY))
        self.assertEqual(calculate_runout(Decimal("-5"), Decimal("5"), TODAY), (0, TODAY))

    def test_reorder_quantity_rounds_up(self):
        qty, when = calculate_reorder_recommendation(Decimal("2.15"), 7, 3, date(2025, 7, 20))
        self.assertEqual(qty, 22)
        self.assertEqual(when, date(2025, 7, 13))

    def test_reorder_without_consumption(self):
        self.assertEqual(calculate_reorder_recommendation(Decimal("0"), 7, 3, None), (0, None))


class ForecastTestCase(unittest.TestCase):
    def setUp(self):
        reset_db("sqlite://")
        self.company_id = make_company()
        self.main = make_location(self.company_id, "Main", is_default=True)
        self.annex = make_location(self.company_id, "Annex")
        self.component_id = make_component(self.company_id, "CMP-A", lead_time_days=7)
        record_initial(
            InitialInput(
                company_id=self.company_id,
                component_id=self.component_id,
                quantity=Decimal("400"),
                date=date(2025, 5, 1),
            ),
            default_location_id=self.main,
        )

    def _rate(self, **kwargs):
        kwargs.setdefault("today", TODAY)
        return calculate_consumption_rate(self.component_id, **kwargs)


class TestComponentForecast(ForecastTestCase):
    def test_build_consumption_drives_forecast(self):
        sku_id, _ = make_sku_with_bom(self.company_id, [(self.component_id, "1")])
        record_build(
            BuildRequest(company_id=self.company_id, sku_id=sku_id, units_to_build=300, date=date(2025, 6, 20)),
            default_location_id=self.main,
        )
        forecast = get_component_forecast(self.component_id, config_override={"safety_days": 3}, today=TODAY)
        self.assertEqual(forecast.quantity_on_hand, Decimal("100"))
        self.assertEqual(forecast.average_daily_consumption, Decimal("10"))
        self.assertEqual(forecast.days_until_runout, 10)
        self.assertEqual(forecast.runout_date, date(2025, 7, 10))
        self.assertEqual(forecast.recommended_reorder_qty, 100)
        self.assertEqual(forecast.recommended_reorder_date, date(2025, 7, 3))
        self.assertEqual(forecast.assumptions.safety_days, 3)
        self.assertEqual(forecast.assumptions.lookback_days, 30)

    def test_idle_component_has_no_runout(self):
        forecast = get_component_forecast(self.component_id, today=TODAY)
        self.assertEqual(forecast.average_daily_consumption, Decimal("0"))
        self.assertIsNone(forecast.days_until_runout)
        self.assertIsNone(forecast.runout_date)
        self.assertEqual(forecast.recommended_reorder_qty, 0)
        self.assertIsNone(forecast.recommended_reorder_date)

    def test_inactive_component_not_found(self):
        inactive = make_component(self.company_id, "OLD", is_active=False)
        with self.assertRaises(NotFoundError):
            get_component_forecast(inactive, today=TODAY)

    def test_company_forecast_lists_active_components(self):
        make_component(self.company_id, "CMP-B")
        make_component(self.company_id, "OLD", is_active=False)
        forecasts = get_component_forecasts(self.company_id, today=TODAY)
        self.assertEqual([f.sku_code for f in forecasts], ["CMP-A", "CMP-B"])
        self.assertEqual(forecasts[0].quantity_on_hand, Decimal("400"))


class TestConsumptionRates(ForecastTestCase):
    def test_excluded_types_are_ignored(self):
        record_adjustment(
            AdjustmentInput(
                company_id=self.company_id,
                component_id=self.component_id,
                quantity=Decimal("-50"),
                reason="spoilage",
                date=date(2025, 6, 25),
            ),
            default_location_id=self.main,
        )
        self.assertEqual(self._rate(), Decimal("0"))
        rate = self._rate(excluded_types=("initial",))
        self.assertEqual(rate.quantize(Decimal("0.01")), Decimal("1.67"))

    def test_lines_outside_window_are_ignored(self):
        record_adjustment(
            AdjustmentInput(
                company_id=self.company_id,
                component_id=self.component_id,
                quantity=Decimal("-60"),
                reason="spoilage",
                date=date(2025, 5, 15),
            ),
            default_location_id=self.main,
        )
        self.assertEqual(self._rate(excluded_types=()), Decimal("0"))

    def test_transfers_only_count_for_location_view(self):
        record_transfer(
            TransferInput(
                company_id=self.company_id,
                component_id=self.component_id,
                quantity=Decimal("30"),
                from_location_id=self.main,
                to_location_id=self.annex,
                date=date(2025, 6, 25),
            )
        )
        self.assertEqual(self._rate(), Decimal("0"))
        self.assertEqual(self._rate(location_id=self.main), Decimal("1"))
        self.assertEqual(self._rate(location_id=self.annex), Decimal("0"))
        self.assertEqual(
            self._rate(location_id=self.main, excluded_types=("initial", "adjustment", "transfer")), Decimal("0")
        )

    def test_non_positive_lookback_rejected(self):
        for days in (0, -7):
            with self.assertRaises(LedgerValidationError) as ctx:
                self._rate(lookback_days=days)
            self.assertEqual(ctx.exception.code, "INVALID_LOOKBACK")


class TestForecastConfig(ForecastTestCase):
    def test_defaults_when_nothing_saved(self):
        config = get_forecast_config(self.company_id)
        self.assertEqual(config.lookback_days, 30)
        self.assertEqual(config.safety_days, 7)
        self.assertEqual(config.excluded_transaction_types, ["initial", "adjustment"])

    def test_partial_update_merges_over_current(self):
        upsert_forecast_config(self.company_id, {"safety_days": 3})
        upsert_forecast_config(self.company_id, ForecastSettingsUpdate(lookback_days=60))
        config = get_forecast_config(self.company_id)
        self.assertEqual(config.lookback_days, 60)
        self.assertEqual(config.safety_days, 3)

    def test_out_of_range_values_rejected(self):
        with self.assertRaises(ValidationError):
            upsert_forecast_config(self.company_id, {"lookback_days": 400})
        with self.assertRaises(ValidationError):
            ForecastSettingsUpdate(safety_days=-1)
        self.assertEqual(get_forecast_config(self.company_id).lookback_days, 30)

    def test_duplicate_excluded_types_collapse(self):
        config = upsert_forecast_config(
            self.company_id, {"excluded_transaction_types": ["transfer", "transfer", "initial"]}
        )
        self.assertEqual(config.excluded_transaction_types, ["transfer", "initial"])


if __name__ == "__main__":
    unittest.main()
