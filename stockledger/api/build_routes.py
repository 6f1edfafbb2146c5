"""Build API routes: gate pre-checks, build commit, BOM helpers and defect alerts."""

from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Query

from stockledger.db import get_session
from stockledger.db.repositories.bom_repo import resolve_bom_version
from stockledger.db.repositories.settings_repo import get_company_settings
from stockledger.models.inputs import BuildRequest
from stockledger.models.outputs import BuildResult, DefectAlertResult
from stockledger.services.alerts import list_defect_alerts
from stockledger.services.build import (
    calculate_bom_unit_cost,
    calculate_max_buildable_units,
    check_expired_lots,
    check_insufficient_inventory,
    record_build,
)
from stockledger.services.transactions import get_default_location_id

router = APIRouter(prefix="/builds", tags=["builds"])


@router.post("", status_code=201)
async def create_build(request: BuildRequest) -> BuildResult:
    """Run the build pipeline. Gate refusals come back as 409 with the offending items."""
    return record_build(request, default_location_id=get_default_location_id(request.company_id))


@router.post("/check")
async def check_build(request: BuildRequest) -> dict[str, Any]:
    """Run both gates without writing anything."""
    location_id = request.location_id or get_default_location_id(request.company_id)
    with get_session() as session:
        bom = resolve_bom_version(session, request.company_id, request.sku_id, request.bom_version_id)
        bom_version_id = bom.id
        settings = get_company_settings(session, request.company_id)
    shortages = check_insufficient_inventory(request.company_id, bom_version_id, request.units_to_build, location_id)
    expired = check_expired_lots(bom_version_id, request.units_to_build, request.lot_overrides, today=request.date)
    return {
        "bom_version_id": bom_version_id,
        "insufficient_items": [s.model_dump(mode="json") for s in shortages],
        "expired_lots": [e.model_dump(mode="json") for e in expired],
        "can_override_expired": settings.allow_expired_lot_override,
    }


@router.get("/max-buildable/{sku_id}")
async def max_buildable(sku_id: int, location_id: Optional[int] = Query(None)) -> dict[str, Any]:
    return {"sku_id": sku_id, "max_buildable_units": calculate_max_buildable_units(sku_id, location_id)}


@router.get("/bom-cost/{bom_version_id}")
async def bom_cost(bom_version_id: int) -> dict[str, Any]:
    unit_cost: Decimal = calculate_bom_unit_cost(bom_version_id)
    return {"bom_version_id": bom_version_id, "unit_cost": str(unit_cost)}


@router.get("/alerts")
async def defect_alerts(company_id: int = Query(...), sku_id: Optional[int] = Query(None)) -> list[DefectAlertResult]:
    return list_defect_alerts(company_id, sku_id)
