"""FEFO lot allocation.

Lots are consumed earliest-expiry first; lots without an expiry date go last,
and ties fall back to creation order. Manual overrides are applied before the
FEFO walk, which then covers whatever the overrides left.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from stockledger.db.models.master import Component
from stockledger.db.repositories import lot_repo
from stockledger.errors import LedgerValidationError
from stockledger.models.inputs import LotOverride
from stockledger.models.outputs import AffectedSku, Allocation, AvailableLot, LotAllocation
from stockledger.services.expiry import is_lot_expired

ZERO = Decimal("0")


def _fefo_key(lot: AvailableLot):
    return (
        lot.expiry_date is None,
        lot.expiry_date or date.max,
        lot.created_at is None,
        lot.created_at,
        lot.lot_id,
    )


def sort_lots_fefo(lots: Iterable[AvailableLot]) -> list[AvailableLot]:
    return sorted(lots, key=_fefo_key)


def allocate_fefo(lots: Iterable[AvailableLot], required: Decimal) -> list[LotAllocation]:
    """Greedy FEFO walk. Allocations sum to min(required, total available)."""
    required = Decimal(required)
    if required <= 0:
        return []
    remaining = required
    allocations: list[LotAllocation] = []
    for lot in sort_lots_fefo(lots):
        if remaining <= 0:
            break
        if lot.available_quantity <= 0:
            continue
        take = min(lot.available_quantity, remaining)
        allocations.append(
            LotAllocation(
                lot_id=lot.lot_id,
                lot_number=lot.lot_number,
                quantity=take,
                expiry_date=lot.expiry_date,
                is_expired=lot.is_expired,
            )
        )
        remaining -= take
    return allocations


def get_available_lots(
    session: Session, component_id: int, exclude_expired: bool = False, today: Optional[date] = None
) -> list[AvailableLot]:
    """Lots of the component with positive balance, FEFO-sorted."""
    today = today or date.today()
    lots = []
    for lot, quantity in lot_repo.list_lots_with_balance(session, component_id):
        expired = is_lot_expired(lot.expiry_date, today)
        if exclude_expired and expired:
            continue
        lots.append(
            AvailableLot(
                lot_id=lot.id,
                lot_number=lot.lot_number,
                available_quantity=quantity,
                expiry_date=lot.expiry_date,
                is_expired=expired,
                created_at=lot.created_at,
            )
        )
    return sort_lots_fefo(lots)


def _merge_overrides(overrides: Iterable[LotOverride]) -> dict[int, Decimal]:
    """Sum override quantities per lot, preserving first-seen order."""
    merged: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for o in overrides:
        merged[o.lot_id] += o.quantity
    return dict(merged)


def allocate_lots(
    session: Session,
    component_id: int,
    required: Decimal,
    exclude_expired: bool = False,
    overrides: Optional[Sequence[LotOverride]] = None,
    today: Optional[date] = None,
) -> Allocation:
    """Overrides for this component first, then FEFO over what the lots have left.

    Raises LedgerValidationError (INVALID_LOT_OVERRIDE) for an override that names
    an unknown lot, a lot of another component, more than the lot holds, or a total
    above the requirement. exclude_expired only applies to the FEFO remainder.
    """
    today = today or date.today()
    required = Decimal(required)
    own = [o for o in (overrides or []) if o.component_id == component_id]
    requested = _merge_overrides(own)

    allocations: list[LotAllocation] = []
    if requested:
        found = lot_repo.get_lots_with_balance(session, requested.keys())
        errors = []
        for lot_id, quantity in requested.items():
            if lot_id not in found:
                errors.append(f"Lot {lot_id} not found")
                continue
            lot, balance = found[lot_id]
            if lot.component_id != component_id:
                errors.append(f"Lot {lot.lot_number} does not belong to component {component_id}")
            elif quantity > balance:
                errors.append(f"Lot {lot.lot_number} has {balance} available, {quantity} requested")
        total = sum(requested.values(), ZERO)
        if total > required:
            errors.append(f"Overrides total {total} exceeds required {required} for component {component_id}")
        if errors:
            raise LedgerValidationError(
                "Invalid lot overrides", code="INVALID_LOT_OVERRIDE", details={"errors": errors}
            )
        for lot_id, quantity in requested.items():
            lot, _ = found[lot_id]
            allocations.append(
                LotAllocation(
                    lot_id=lot.id,
                    lot_number=lot.lot_number,
                    quantity=quantity,
                    expiry_date=lot.expiry_date,
                    is_expired=is_lot_expired(lot.expiry_date, today),
                )
            )

    remaining = required - sum((a.quantity for a in allocations), ZERO)
    if remaining > 0:
        pool = []
        for lot in get_available_lots(session, component_id, exclude_expired=exclude_expired, today=today):
            left = lot.available_quantity - requested.get(lot.lot_id, ZERO)
            if left > 0:
                pool.append(lot.model_copy(update={"available_quantity": left}))
        fefo = allocate_fefo(pool, remaining)
        allocations.extend(fefo)
        remaining -= sum((a.quantity for a in fefo), ZERO)

    return Allocation(component_id=component_id, required=required, lots=allocations, unallocated=max(remaining, ZERO))


def validate_lot_overrides(session: Session, company_id: int, overrides: Sequence[LotOverride]) -> list[str]:
    """Human-readable problems with a set of overrides; empty when they are usable."""
    errors: list[str] = []
    by_component: dict[int, list[LotOverride]] = defaultdict(list)
    for o in overrides:
        by_component[o.component_id].append(o)

    for component_id, items in by_component.items():
        component = session.get(Component, component_id)
        if component is None or component.company_id != company_id:
            errors.append(f"Component {component_id} not found")
            continue
        requested = _merge_overrides(items)
        found = lot_repo.get_lots_with_balance(session, requested.keys())
        for lot_id, quantity in requested.items():
            if lot_id not in found:
                errors.append(f"Lot {lot_id} not found")
                continue
            lot, balance = found[lot_id]
            if lot.component_id != component_id:
                errors.append(f"Lot {lot.lot_number} does not belong to component {component.sku_code}")
            elif quantity > balance:
                errors.append(f"Lot {lot.lot_number} has {balance} available, {quantity} requested")
    return errors


def get_affected_skus_for_lot(session: Session, lot_id: int) -> list[AffectedSku]:
    """Traceability: which SKUs were built from this lot."""
    return [
        AffectedSku(
            sku_id=sku.id,
            sku_name=sku.name,
            internal_code=sku.internal_code,
            quantity_used=quantity,
            transaction_count=count,
        )
        for sku, quantity, count in lot_repo.list_skus_built_from_lot(session, lot_id)
    ]
