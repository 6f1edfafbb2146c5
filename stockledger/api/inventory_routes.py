"""Inventory API routes: balances, reorder status, lots, reconciliation."""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Query

from stockledger.db import get_session
from stockledger.db.repositories import balance_repo
from stockledger.models.outputs import AffectedSku, BalanceDrift, ComponentStatus, ExpiringLot
from stockledger.services.expiry import get_expired_lot_count, get_expiring_lots
from stockledger.services.lot_allocator import get_affected_skus_for_lot

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/components")
async def list_component_balances(
    company_id: int = Query(...),
    status: Optional[Literal["ok", "warning", "critical"]] = Query(None),
    brand_id: Optional[int] = Query(None),
    location_id: Optional[int] = Query(None),
) -> list[ComponentStatus]:
    """Active components with on-hand quantity and reorder status."""
    with get_session() as session:
        return balance_repo.list_components_with_reorder_status(
            session, company_id, status=status, brand_id=brand_id, location_id=location_id
        )


@router.get("/components/{component_id}")
async def get_component_balance(
    component_id: int,
    company_id: int = Query(...),
    location_id: Optional[int] = Query(None),
) -> dict[str, Any]:
    """On-hand for one component (at a location or global) plus the per-location breakdown."""
    with get_session() as session:
        quantity = balance_repo.get_component_quantity(session, company_id, component_id, location_id)
        by_location = balance_repo.get_component_quantities_by_location(session, company_id, component_id)
    return {
        "component_id": component_id,
        "location_id": location_id,
        "quantity": str(quantity),
        "by_location": [b.model_dump(mode="json") for b in by_location],
    }


@router.get("/skus/{sku_id}")
async def get_sku_balance(
    sku_id: int,
    company_id: int = Query(...),
    location_id: Optional[int] = Query(None),
) -> dict[str, Any]:
    """Finished goods on hand for one SKU plus the per-location breakdown."""
    with get_session() as session:
        quantity = balance_repo.get_sku_quantity(session, company_id, sku_id, location_id)
        by_location = balance_repo.get_sku_quantities_by_location(session, company_id, sku_id)
    return {
        "sku_id": sku_id,
        "location_id": location_id,
        "quantity": str(quantity),
        "by_location": [b.model_dump(mode="json") for b in by_location],
    }


@router.get("/lots/expiring")
async def list_expiring_lots(
    company_id: int = Query(...),
    days: Optional[int] = Query(None, ge=0, le=365),
    include_expired: bool = Query(False),
) -> dict[str, Any]:
    with get_session() as session:
        lots: list[ExpiringLot] = get_expiring_lots(
            session, company_id, warning_days=days, include_expired=include_expired
        )
        expired_count = get_expired_lot_count(session, company_id)
    return {"lots": [lot.model_dump(mode="json") for lot in lots], "expired_count": expired_count}


@router.get("/lots/{lot_id}/affected-skus")
async def lot_affected_skus(lot_id: int) -> list[AffectedSku]:
    """Traceability: SKUs built from this lot."""
    with get_session() as session:
        return get_affected_skus_for_lot(session, lot_id)


@router.get("/reconcile")
async def balance_drift(company_id: int = Query(...)) -> list[BalanceDrift]:
    """Balances that disagree with the sum of their ledger lines."""
    with get_session() as session:
        return balance_repo.find_balance_drift(session, company_id)


@router.post("/reconcile")
async def rebuild_drifted_balances(company_id: int = Query(...)) -> dict[str, Any]:
    """Correct drifted balances from the ledger."""
    with get_session() as session:
        fixed = balance_repo.rebuild_balances(session, company_id)
    return {"fixed": len(fixed), "items": [d.model_dump(mode="json") for d in fixed]}
