"""Consumption-rate forecasting: runout projection and reorder recommendations."""

from datetime import date, timedelta
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import select

from stockledger.config import FORECAST_DEFAULT_LOOKBACK_DAYS, FORECAST_DEFAULT_SAFETY_DAYS
from stockledger.db import get_session
from stockledger.db.models.master import Component
from stockledger.db.repositories import forecast_repo
from stockledger.db.repositories.balance_repo import ZERO, get_component_quantities
from stockledger.errors import LedgerValidationError, NotFoundError
from stockledger.models.outputs import ComponentForecast, ForecastAssumptions
from stockledger.models.settings import ForecastSettings, ForecastSettingsUpdate
from stockledger.utils.logger import get_logger

logger = get_logger("stockledger.services.forecast")

DEFAULT_EXCLUDED_TYPES = ("initial", "adjustment")


def _defaults() -> ForecastSettings:
    return ForecastSettings(lookback_days=FORECAST_DEFAULT_LOOKBACK_DAYS, safety_days=FORECAST_DEFAULT_SAFETY_DAYS)


def get_forecast_config(company_id: int) -> ForecastSettings:
    """Stored config for the company, or defaults when none was saved."""
    with get_session() as session:
        row = forecast_repo.get_config_row(session, company_id)
        if row is None:
            return _defaults()
        return ForecastSettings(
            lookback_days=row.lookback_days,
            safety_days=row.safety_days,
            excluded_transaction_types=row.excluded_transaction_types or [],
        )


def _merge(base: ForecastSettings, partial: ForecastSettingsUpdate | dict[str, Any] | None) -> ForecastSettings:
    if partial is None:
        return base
    if isinstance(partial, dict):
        partial = ForecastSettingsUpdate(**partial)
    changes = partial.model_dump(exclude_none=True)
    return ForecastSettings(**{**base.model_dump(), **changes})


def upsert_forecast_config(company_id: int, partial: ForecastSettingsUpdate | dict[str, Any]) -> ForecastSettings:
    """Apply a partial update over the current config and persist it."""
    merged = _merge(get_forecast_config(company_id), partial)
    with get_session() as session:
        forecast_repo.save_config_row(
            session,
            company_id,
            lookback_days=merged.lookback_days,
            safety_days=merged.safety_days,
            excluded_transaction_types=list(merged.excluded_transaction_types),
        )
    logger.info("forecast.config.saved", company_id=company_id, **merged.model_dump())
    return merged


def calculate_consumption_rates(
    component_ids: Iterable[int],
    lookback_days: int = 30,
    excluded_types: Sequence[str] = DEFAULT_EXCLUDED_TYPES,
    location_id: Optional[int] = None,
    today: Optional[date] = None,
) -> dict[int, Decimal]:
    """Average daily consumption per component; every requested id is present."""
    if lookback_days <= 0:
        raise LedgerValidationError(
            "Lookback window must be at least one day",
            code="INVALID_LOOKBACK",
            details={"lookback_days": lookback_days},
        )
    today = today or date.today()
    since = today - timedelta(days=lookback_days)
    with get_session() as session:
        consumed = forecast_repo.sum_consumption(
            session, component_ids, since, today, excluded_types, location_id=location_id
        )
    divisor = Decimal(lookback_days)
    return {cid: total / divisor for cid, total in consumed.items()}


def calculate_consumption_rate(
    component_id: int,
    lookback_days: int = 30,
    excluded_types: Sequence[str] = DEFAULT_EXCLUDED_TYPES,
    location_id: Optional[int] = None,
    today: Optional[date] = None,
) -> Decimal:
    rates = calculate_consumption_rates([component_id], lookback_days, excluded_types, location_id, today)
    return rates[component_id]


def calculate_runout(
    on_hand: Decimal | int, daily_rate: Decimal | int, today: Optional[date] = None
) -> tuple[Optional[int], Optional[date]]:
    """(days_until_runout, runout_date). No consumption means no runout."""
    today = today or date.today()
    on_hand, daily_rate = Decimal(on_hand), Decimal(daily_rate)
    if daily_rate <= 0:
        return None, None
    if on_hand <= 0:
        return 0, today
    days = int((on_hand / daily_rate).to_integral_value(rounding=ROUND_FLOOR))
    return days, today + timedelta(days=days)


def calculate_reorder_recommendation(
    daily_rate: Decimal | int, lead_time_days: int, safety_days: int, runout_date: Optional[date]
) -> tuple[int, Optional[date]]:
    """(recommended_qty, recommended_date) covering lead time plus safety buffer."""
    daily_rate = Decimal(daily_rate)
    if daily_rate <= 0:
        return 0, None
    qty = int((daily_rate * (lead_time_days + safety_days)).to_integral_value(rounding=ROUND_CEILING))
    reorder_date = runout_date - timedelta(days=lead_time_days) if runout_date is not None else None
    return qty, reorder_date


def _build_forecast(
    component: Component, on_hand: Decimal, rate: Decimal, config: ForecastSettings, today: date
) -> ComponentForecast:
    days, runout_date = calculate_runout(on_hand, rate, today)
    qty, reorder_date = calculate_reorder_recommendation(rate, component.lead_time_days, config.safety_days, runout_date)
    return ComponentForecast(
        component_id=component.id,
        component_name=component.name,
        sku_code=component.sku_code,
        quantity_on_hand=on_hand,
        average_daily_consumption=rate,
        days_until_runout=days,
        runout_date=runout_date,
        recommended_reorder_qty=qty,
        recommended_reorder_date=reorder_date,
        lead_time_days=component.lead_time_days,
        assumptions=ForecastAssumptions(
            lookback_days=config.lookback_days,
            safety_days=config.safety_days,
            excluded_transaction_types=list(config.excluded_transaction_types),
        ),
    )


def get_component_forecasts(
    company_id: int,
    config_override: ForecastSettingsUpdate | dict[str, Any] | None = None,
    brand_id: Optional[int] = None,
    location_id: Optional[int] = None,
    today: Optional[date] = None,
) -> list[ComponentForecast]:
    """Forecast every active component of the company (optionally one brand / one location)."""
    today = today or date.today()
    config = _merge(get_forecast_config(company_id), config_override)

    with get_session() as session:
        q = select(Component).where(Component.company_id == company_id, Component.is_active.is_(True))
        if brand_id is not None:
            q = q.where(Component.brand_id == brand_id)
        components = list(session.scalars(q.order_by(Component.name)).all())
        if not components:
            return []
        ids = [c.id for c in components]
        quantities = get_component_quantities(session, company_id, ids, location_id)
        # Plain values: the ORM rows expire when the session closes
        rows = [(c, quantities.get(c.id, ZERO)) for c in components]
        for c, _ in rows:
            session.expunge(c)

    rates = calculate_consumption_rates(
        ids, config.lookback_days, config.excluded_transaction_types, location_id, today
    )
    return [_build_forecast(c, on_hand, rates[c.id], config, today) for c, on_hand in rows]


def get_component_forecast(
    component_id: int,
    config_override: ForecastSettingsUpdate | dict[str, Any] | None = None,
    location_id: Optional[int] = None,
    today: Optional[date] = None,
) -> ComponentForecast:
    """Forecast one component. NotFoundError if it does not exist or is inactive."""
    today = today or date.today()
    with get_session() as session:
        component = session.get(Component, component_id)
        if component is None or not component.is_active:
            raise NotFoundError("Component", component_id)
        company_id = component.company_id
        on_hand = get_component_quantities(session, company_id, [component_id], location_id)[component_id]
        session.expunge(component)

    config = _merge(get_forecast_config(company_id), config_override)
    rate = calculate_consumption_rate(
        component_id, config.lookback_days, config.excluded_transaction_types, location_id, today
    )
    return _build_forecast(component, on_hand, rate, config, today)
