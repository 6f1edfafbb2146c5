"""Forecast API routes: component forecasts and per-company forecast config."""

from typing import Optional

from fastapi import APIRouter, Query

from stockledger.models.outputs import ComponentForecast
from stockledger.models.settings import ForecastSettings, ForecastSettingsUpdate
from stockledger.services.forecast import (
    get_component_forecast,
    get_component_forecasts,
    get_forecast_config,
    upsert_forecast_config,
)

router = APIRouter(prefix="/forecasts", tags=["forecasts"])


def _override(lookback_days: Optional[int], safety_days: Optional[int]) -> Optional[ForecastSettingsUpdate]:
    if lookback_days is None and safety_days is None:
        return None
    return ForecastSettingsUpdate(lookback_days=lookback_days, safety_days=safety_days)


@router.get("")
async def list_forecasts(
    company_id: int = Query(...),
    brand_id: Optional[int] = Query(None),
    location_id: Optional[int] = Query(None),
    lookback_days: Optional[int] = Query(None, ge=7, le=365),
    safety_days: Optional[int] = Query(None, ge=0, le=90),
) -> list[ComponentForecast]:
    """Forecast every active component; lookback/safety override the stored config for this call."""
    return get_component_forecasts(
        company_id,
        config_override=_override(lookback_days, safety_days),
        brand_id=brand_id,
        location_id=location_id,
    )


@router.get("/components/{component_id}")
async def component_forecast(
    component_id: int,
    location_id: Optional[int] = Query(None),
    lookback_days: Optional[int] = Query(None, ge=7, le=365),
    safety_days: Optional[int] = Query(None, ge=0, le=90),
) -> ComponentForecast:
    return get_component_forecast(
        component_id, config_override=_override(lookback_days, safety_days), location_id=location_id
    )


@router.get("/config")
async def read_forecast_config(company_id: int = Query(...)) -> ForecastSettings:
    return get_forecast_config(company_id)


@router.put("/config")
async def update_forecast_config(body: ForecastSettingsUpdate, company_id: int = Query(...)) -> ForecastSettings:
    return upsert_forecast_config(company_id, body)
