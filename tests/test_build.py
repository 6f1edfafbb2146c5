"""Tests for the build pipeline: gates, atomic commit, lots, cost snapshot and defect alerts."""

import os
import sys
import unittest
from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

os.environ["DATABASE_URL"] = "sqlite://"

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from factories import (
    balance,
    count_lines,
    count_transactions,
    ledger_sum,
    lot_balance,
    make_company,
    make_component,
    make_location,
    make_sku_with_bom,
    make_threshold,
)
from stockledger.db import get_session, reset_db
from stockledger.db.repositories.balance_repo import get_sku_quantity
from stockledger.db.repositories.settings_repo import update_company_settings
from stockledger.errors import ExpiredLotsError, InsufficientInventoryError, LedgerValidationError, NotFoundError
from stockledger.models.inputs import BuildRequest, LotOverride, ReceiptInput
from stockledger.services.alerts import list_defect_alerts
from stockledger.services.build import (
    calculate_bom_unit_cost,
    calculate_max_buildable_units,
    check_expired_lots,
    check_insufficient_inventory,
    record_build,
)
from stockledger.services.lot_allocator import get_affected_skus_for_lot
from stockledger.services.transactions import record_receipt

BUILD_DAY = date(2025, 3, 1)


class BuildTestCase(unittest.TestCase):
    """Two-component BOM: A at 2 per unit (400 on hand), B at 1 per unit (150 on hand)."""

    def setUp(self):
        reset_db("sqlite://")
        self.company_id = make_company()
        self.main = make_location(self.company_id, "Main", is_default=True)
        self.fg = make_location(self.company_id, "Finished Goods")
        self.comp_a = make_component(self.company_id, "CMP-A", cost="1.00")
        self.comp_b = make_component(self.company_id, "CMP-B", cost="0.50")
        self.sku_id, self.bom_id = make_sku_with_bom(self.company_id, [(self.comp_a, "2"), (self.comp_b, "1")])
        self._receive(self.comp_a, 400)
        self._receive(self.comp_b, 150)

    def _receive(self, component_id, quantity, lot_number=None, expiry=None, company_id=None, location_id=None):
        result = record_receipt(
            ReceiptInput(
                company_id=company_id or self.company_id,
                component_id=component_id,
                quantity=Decimal(quantity),
                lot_number=lot_number,
                expiry_date=expiry,
                date=date(2025, 1, 10),
            ),
            default_location_id=location_id or self.main,
        )
        return result.lines[0].lot_id

    def _request(self, units, **kwargs):
        kwargs.setdefault("date", BUILD_DAY)
        return BuildRequest(company_id=self.company_id, sku_id=self.sku_id, units_to_build=units, **kwargs)

    def _fg_quantity(self, location_id=None):
        with get_session() as session:
            return get_sku_quantity(session, self.company_id, self.sku_id, location_id)


class TestBuildCommit(BuildTestCase):
    def test_successful_build_moves_stock_and_snapshots_cost(self):
        result = record_build(self._request(20, output_location_id=self.fg), default_location_id=self.main)
        txn = result.transaction
        self.assertEqual(txn.type, "build")
        self.assertEqual(txn.units_built, 20)
        self.assertEqual(txn.unit_bom_cost, Decimal("2.5"))
        self.assertEqual(txn.total_bom_cost, Decimal("50"))
        self.assertIsNone(result.warning)
        self.assertEqual(result.insufficient_items, [])

        self.assertEqual(balance(self.comp_a, self.main), Decimal("360"))
        self.assertEqual(balance(self.comp_b, self.main), Decimal("130"))
        self.assertEqual(ledger_sum(self.comp_a, self.main), Decimal("360"))
        self.assertEqual(self._fg_quantity(self.fg), Decimal("20"))
        self.assertEqual(len(txn.finished_goods_lines), 1)
        self.assertEqual(txn.finished_goods_lines[0].quantity_change, Decimal("20"))

    def test_output_defaults_to_default_location(self):
        record_build(self._request(5), default_location_id=self.main)
        self.assertEqual(self._fg_quantity(self.main), Decimal("5"))

    def test_no_finished_goods_when_output_disabled(self):
        result = record_build(self._request(5, output_to_finished_goods=False), default_location_id=self.main)
        self.assertEqual(result.transaction.finished_goods_lines, [])
        self.assertEqual(self._fg_quantity(), Decimal("0"))

    def test_output_quantity_overrides_units(self):
        record_build(self._request(10, output_quantity=9), default_location_id=self.main)
        self.assertEqual(self._fg_quantity(), Decimal("9"))

    def test_cost_snapshot_survives_later_cost_change(self):
        result = record_build(self._request(10), default_location_id=self.main)
        record_receipt(
            ReceiptInput(
                company_id=self.company_id,
                component_id=self.comp_a,
                quantity=Decimal("1"),
                cost_per_unit=Decimal("9.00"),
                update_component_cost=True,
            ),
            default_location_id=self.main,
        )
        self.assertEqual(calculate_bom_unit_cost(self.bom_id), Decimal("18.5"))
        self.assertEqual(result.transaction.unit_bom_cost, Decimal("2.5"))

    def test_failure_mid_commit_leaves_no_trace(self):
        txns, lines = count_transactions(), count_lines()
        with patch("stockledger.services.build.apply_component_delta", side_effect=RuntimeError("disk full")):
            with self.assertRaises(RuntimeError):
                record_build(self._request(10), default_location_id=self.main)
        self.assertEqual(count_transactions(), txns)
        self.assertEqual(count_lines(), lines)
        self.assertEqual(balance(self.comp_a, self.main), Decimal("400"))
        self.assertEqual(self._fg_quantity(), Decimal("0"))

    def test_inactive_output_location_rejected_without_writes(self):
        closed = make_location(self.company_id, "Closed", is_active=False)
        txns = count_transactions()
        with self.assertRaises(NotFoundError):
            record_build(self._request(5, output_location_id=closed), default_location_id=self.main)
        self.assertEqual(count_transactions(), txns)
        self.assertEqual(balance(self.comp_a, self.main), Decimal("400"))

    def test_missing_location_rejected(self):
        with self.assertRaises(LedgerValidationError) as ctx:
            record_build(self._request(5))
        self.assertEqual(ctx.exception.code, "NO_LOCATION")

    def test_empty_bom_rejected(self):
        sku_id, _ = make_sku_with_bom(self.company_id, [], code="EMPTY")
        with self.assertRaises(LedgerValidationError) as ctx:
            record_build(
                BuildRequest(company_id=self.company_id, sku_id=sku_id, units_to_build=1),
                default_location_id=self.main,
            )
        self.assertEqual(ctx.exception.code, "EMPTY_BOM")

    def test_unknown_sku_not_found(self):
        with self.assertRaises(NotFoundError):
            record_build(
                BuildRequest(company_id=self.company_id, sku_id=777, units_to_build=1),
                default_location_id=self.main,
            )


class TestSufficiencyGate(BuildTestCase):
    def test_shortage_refuses_build_without_writes(self):
        txns = count_transactions()
        with self.assertRaises(InsufficientInventoryError) as ctx:
            record_build(self._request(250), default_location_id=self.main)
        shortages = {item.component_id: item for item in ctx.exception.items}
        self.assertEqual(shortages[self.comp_a].required, Decimal("500"))
        self.assertEqual(shortages[self.comp_a].available, Decimal("400"))
        self.assertEqual(shortages[self.comp_a].shortage, Decimal("100"))
        self.assertEqual(count_transactions(), txns)
        self.assertEqual(balance(self.comp_a, self.main), Decimal("400"))

    def test_shortage_is_exact_difference(self):
        comp_d = make_component(self.company_id, "CMP-D")
        sku_id, _ = make_sku_with_bom(self.company_id, [(comp_d, "1")], code="SKU-D")
        self._receive(comp_d, 40)
        lines = count_lines()
        with self.assertRaises(InsufficientInventoryError) as ctx:
            record_build(
                BuildRequest(company_id=self.company_id, sku_id=sku_id, units_to_build=100, date=BUILD_DAY),
                default_location_id=self.main,
            )
        self.assertEqual(len(ctx.exception.items), 1)
        self.assertEqual(ctx.exception.items[0].shortage, Decimal("60"))
        self.assertEqual(count_lines(), lines)
        self.assertEqual(balance(comp_d, self.main), Decimal("40"))

    def test_check_reports_shortages_without_building(self):
        shortages = check_insufficient_inventory(self.company_id, self.bom_id, 160, self.main)
        self.assertEqual([s.component_id for s in shortages], [self.comp_b])
        self.assertEqual(shortages[0].shortage, Decimal("10"))

    def test_request_override_allows_negative_balance(self):
        result = record_build(self._request(250, allow_insufficient_inventory=True), default_location_id=self.main)
        self.assertEqual(len(result.insufficient_items), 2)
        self.assertIsNotNone(result.warning)
        self.assertEqual(balance(self.comp_a, self.main), Decimal("-100"))
        self.assertEqual(balance(self.comp_b, self.main), Decimal("-100"))

    def test_company_policy_allows_negative_balance(self):
        with get_session() as session:
            update_company_settings(session, self.company_id, {"allow_negative_inventory": True})
        result = record_build(self._request(200), default_location_id=self.main)
        self.assertEqual(result.transaction.units_built, 200)
        self.assertEqual(balance(self.comp_b, self.main), Decimal("-50"))

    def test_stock_at_other_location_does_not_count(self):
        annex = make_location(self.company_id, "Annex")
        with self.assertRaises(InsufficientInventoryError):
            record_build(self._request(1, location_id=annex), default_location_id=self.main)

    def test_max_buildable_units(self):
        self.assertEqual(calculate_max_buildable_units(self.sku_id), 150)
        self.assertEqual(calculate_max_buildable_units(self.sku_id, self.fg), 0)

    def test_bom_unit_cost(self):
        self.assertEqual(calculate_bom_unit_cost(self.bom_id), Decimal("2.5"))


class TestUnknownBomVersion(BuildTestCase):
    def test_shortage_check_on_unknown_bom(self):
        with self.assertRaises(NotFoundError) as ctx:
            check_insufficient_inventory(self.company_id, 9999, 10)
        self.assertEqual(ctx.exception.entity, "BOM version")

    def test_shortage_check_on_other_company_bom(self):
        other = make_company("Other Co")
        with self.assertRaises(NotFoundError):
            check_insufficient_inventory(other, self.bom_id, 10)

    def test_expiry_check_on_unknown_bom(self):
        with self.assertRaises(NotFoundError):
            check_expired_lots(9999, 10, today=BUILD_DAY)

    def test_unit_cost_on_unknown_bom(self):
        with self.assertRaises(NotFoundError):
            calculate_bom_unit_cost(9999)


class TestLotsInBuild(BuildTestCase):
    def setUp(self):
        super().setUp()
        self.serum = make_component(self.company_id, "SRM", cost="0.10")
        self.serum_sku, self.serum_bom = make_sku_with_bom(self.company_id, [(self.serum, "1")], code="SERUM")
        self.expired_lot = self._receive(self.serum, 10, "S-OLD", date(2025, 1, 31))
        self.fresh_lot = self._receive(self.serum, 100, "S-NEW", date(2026, 1, 31))

    def _serum_request(self, units, **kwargs):
        return BuildRequest(
            company_id=self.company_id, sku_id=self.serum_sku, units_to_build=units, date=BUILD_DAY, **kwargs
        )

    def test_expired_lots_refused_with_override_hint(self):
        with self.assertRaises(ExpiredLotsError) as ctx:
            record_build(self._serum_request(5), default_location_id=self.main)
        self.assertTrue(ctx.exception.can_override)
        self.assertEqual([item.lot_id for item in ctx.exception.items], [self.expired_lot])
        self.assertEqual(lot_balance(self.expired_lot), Decimal("10"))

    def test_policy_forbids_expired_override(self):
        with get_session() as session:
            update_company_settings(session, self.company_id, {"allow_expired_lot_override": False})
        with self.assertRaises(ExpiredLotsError) as ctx:
            record_build(self._serum_request(5, allow_expired_lots=True), default_location_id=self.main)
        self.assertFalse(ctx.exception.can_override)

    def test_allow_expired_consumes_expired_lot_first(self):
        result = record_build(self._serum_request(5, allow_expired_lots=True), default_location_id=self.main)
        self.assertEqual([line.lot_id for line in result.transaction.lines], [self.expired_lot])
        self.assertEqual(lot_balance(self.expired_lot), Decimal("5"))
        self.assertEqual(lot_balance(self.fresh_lot), Decimal("100"))

    def test_override_to_fresh_lot_avoids_expiry_gate(self):
        override = LotOverride(component_id=self.serum, lot_id=self.fresh_lot, quantity=Decimal("5"))
        result = record_build(self._serum_request(5, lot_overrides=[override]), default_location_id=self.main)
        self.assertEqual([line.lot_id for line in result.transaction.lines], [self.fresh_lot])
        self.assertEqual(lot_balance(self.fresh_lot), Decimal("95"))
        self.assertEqual(lot_balance(self.expired_lot), Decimal("10"))

    def test_build_splits_lines_across_lots(self):
        result = record_build(self._serum_request(30, allow_expired_lots=True), default_location_id=self.main)
        by_lot = {line.lot_id: line.quantity_change for line in result.transaction.lines}
        self.assertEqual(by_lot, {self.expired_lot: Decimal("-10"), self.fresh_lot: Decimal("-20")})
        self.assertEqual(balance(self.serum, self.main), Decimal("80"))

    def test_override_for_component_outside_bom_rejected(self):
        override = LotOverride(component_id=self.comp_a, lot_id=self.fresh_lot, quantity=Decimal("1"))
        with self.assertRaises(LedgerValidationError) as ctx:
            record_build(self._serum_request(1, lot_overrides=[override]), default_location_id=self.main)
        self.assertEqual(ctx.exception.code, "INVALID_LOT_OVERRIDE")

    def test_lot_traceability(self):
        record_build(self._serum_request(30, allow_expired_lots=True), default_location_id=self.main)
        with get_session() as session:
            affected = get_affected_skus_for_lot(session, self.fresh_lot)
        self.assertEqual(len(affected), 1)
        self.assertEqual(affected[0].sku_id, self.serum_sku)
        self.assertEqual(affected[0].quantity_used, Decimal("20"))
        self.assertEqual(affected[0].transaction_count, 1)


class TestDefectAlertsOnBuild(BuildTestCase):
    def test_high_defect_rate_raises_critical_alert(self):
        make_threshold(self.company_id, "5.0")
        result = record_build(self._request(100, defect_count=10), default_location_id=self.main)
        alerts = list_defect_alerts(self.company_id)
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].transaction_id, result.transaction.id)
        self.assertEqual(alerts[0].defect_rate, Decimal("10"))
        self.assertEqual(alerts[0].severity, "critical")

    def test_alert_failure_does_not_undo_build(self):
        with patch("stockledger.services.build.evaluate_build_defects", side_effect=RuntimeError("boom")):
            result = record_build(self._request(10, defect_count=3), default_location_id=self.main)
        self.assertEqual(result.transaction.units_built, 10)
        self.assertEqual(balance(self.comp_a, self.main), Decimal("380"))


if __name__ == "__main__":
    unittest.main()
