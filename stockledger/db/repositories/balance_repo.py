"""Balance store: materialized per-(item, location) quantities kept in step with the ledger.

All writes are single-statement increments executed by the database; the
current quantity is never read into Python and written back.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from stockledger.db.base import utcnow
from stockledger.db.models.inventory import FinishedGoodsBalance, InventoryBalance
from stockledger.db.models.master import Component, Location, Sku
from stockledger.db.models.transaction import FinishedGoodsLine, Transaction, TransactionLine
from stockledger.errors import NotFoundError
from stockledger.models.outputs import BalanceDrift, ComponentStatus, LocationBalance, ReorderStatus
from stockledger.utils.logger import get_logger

logger = get_logger("stockledger.db.balance_repo")

ZERO = Decimal("0")

_UPSERT_DIALECTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def upsert_increment(session: Session, model: Any, keys: dict[str, Any], delta: Decimal) -> None:
    """Create-or-increment model.quantity for the row identified by keys (a unique constraint)."""
    dialect = session.get_bind().dialect.name
    now = utcnow()
    insert_fn = _UPSERT_DIALECTS.get(dialect)
    if insert_fn is not None:
        stmt = insert_fn(model).values(**keys, quantity=delta, created_at=now, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(keys),
            set_={"quantity": model.quantity + stmt.excluded.quantity, "updated_at": now},
        )
        session.execute(stmt)
        return

    # Generic path: atomic UPDATE first, INSERT only when no row matched
    conditions = [getattr(model, k) == v for k, v in keys.items()]
    result = session.execute(
        update(model).where(*conditions).values(quantity=model.quantity + delta, updated_at=now)
    )
    if result.rowcount == 0:
        session.execute(insert(model).values(**keys, quantity=delta, created_at=now, updated_at=now))


def apply_component_delta(session: Session, component_id: int, location_id: int, delta: Decimal) -> None:
    upsert_increment(session, InventoryBalance, {"component_id": component_id, "location_id": location_id}, delta)


def apply_sku_delta(session: Session, sku_id: int, location_id: int, delta: Decimal) -> None:
    upsert_increment(session, FinishedGoodsBalance, {"sku_id": sku_id, "location_id": location_id}, delta)


def _require_component(session: Session, company_id: int, component_id: int) -> Component:
    component = session.get(Component, component_id)
    if component is None or component.company_id != company_id:
        raise NotFoundError("Component", component_id)
    return component


def _require_sku(session: Session, company_id: int, sku_id: int) -> Sku:
    sku = session.get(Sku, sku_id)
    if sku is None or sku.company_id != company_id:
        raise NotFoundError("SKU", sku_id)
    return sku


def get_component_quantity(
    session: Session, company_id: int, component_id: int, location_id: Optional[int] = None
) -> Decimal:
    """On-hand at one location, or summed across all locations when location_id is None."""
    _require_component(session, company_id, component_id)
    q = select(func.coalesce(func.sum(InventoryBalance.quantity), ZERO)).where(
        InventoryBalance.component_id == component_id
    )
    if location_id is not None:
        q = q.where(InventoryBalance.location_id == location_id)
    return Decimal(session.scalar(q) or 0)


def get_component_quantities(
    session: Session,
    company_id: int,
    component_ids: Iterable[int],
    location_id: Optional[int] = None,
) -> dict[int, Decimal]:
    """Batched on-hand. Every requested id is present; unknown or foreign ids report zero."""
    ids = list(dict.fromkeys(component_ids))
    result: dict[int, Decimal] = {cid: ZERO for cid in ids}
    if not ids:
        return result
    q = (
        select(InventoryBalance.component_id, func.sum(InventoryBalance.quantity))
        .join(Component, Component.id == InventoryBalance.component_id)
        .where(Component.company_id == company_id, InventoryBalance.component_id.in_(ids))
        .group_by(InventoryBalance.component_id)
    )
    if location_id is not None:
        q = q.where(InventoryBalance.location_id == location_id)
    for component_id, total in session.execute(q):
        result[component_id] = Decimal(total or 0)
    return result


def get_component_quantities_by_location(
    session: Session, company_id: int, component_id: int
) -> list[LocationBalance]:
    """Non-zero balances of one component, sorted by location name."""
    _require_component(session, company_id, component_id)
    q = (
        select(Location.id, Location.name, Location.type, InventoryBalance.quantity)
        .join(Location, Location.id == InventoryBalance.location_id)
        .where(InventoryBalance.component_id == component_id, InventoryBalance.quantity != 0)
        .order_by(Location.name)
    )
    return [
        LocationBalance(location_id=lid, location_name=name, location_type=ltype, quantity=Decimal(qty))
        for lid, name, ltype, qty in session.execute(q)
    ]


def get_sku_quantity(session: Session, company_id: int, sku_id: int, location_id: Optional[int] = None) -> Decimal:
    _require_sku(session, company_id, sku_id)
    q = select(func.coalesce(func.sum(FinishedGoodsBalance.quantity), ZERO)).where(
        FinishedGoodsBalance.sku_id == sku_id
    )
    if location_id is not None:
        q = q.where(FinishedGoodsBalance.location_id == location_id)
    return Decimal(session.scalar(q) or 0)


def get_sku_quantities(
    session: Session, company_id: int, sku_ids: Iterable[int], location_id: Optional[int] = None
) -> dict[int, Decimal]:
    ids = list(dict.fromkeys(sku_ids))
    result: dict[int, Decimal] = {sid: ZERO for sid in ids}
    if not ids:
        return result
    q = (
        select(FinishedGoodsBalance.sku_id, func.sum(FinishedGoodsBalance.quantity))
        .join(Sku, Sku.id == FinishedGoodsBalance.sku_id)
        .where(Sku.company_id == company_id, FinishedGoodsBalance.sku_id.in_(ids))
        .group_by(FinishedGoodsBalance.sku_id)
    )
    if location_id is not None:
        q = q.where(FinishedGoodsBalance.location_id == location_id)
    for sku_id, total in session.execute(q):
        result[sku_id] = Decimal(total or 0)
    return result


def get_sku_quantities_by_location(session: Session, company_id: int, sku_id: int) -> list[LocationBalance]:
    _require_sku(session, company_id, sku_id)
    q = (
        select(Location.id, Location.name, Location.type, FinishedGoodsBalance.quantity)
        .join(Location, Location.id == FinishedGoodsBalance.location_id)
        .where(FinishedGoodsBalance.sku_id == sku_id, FinishedGoodsBalance.quantity != 0)
        .order_by(Location.name)
    )
    return [
        LocationBalance(location_id=lid, location_name=name, location_type=ltype, quantity=Decimal(qty))
        for lid, name, ltype, qty in session.execute(q)
    ]


def calculate_reorder_status(
    on_hand: Decimal | int | float, reorder_point: Decimal | int | float, warning_multiplier: float = 1.5
) -> ReorderStatus:
    """Derived status; a reorder point of zero means the component is not tracked."""
    on_hand = Decimal(str(on_hand))
    reorder_point = Decimal(str(reorder_point))
    if reorder_point <= 0:
        return "ok"
    if on_hand <= reorder_point:
        return "critical"
    if on_hand <= reorder_point * Decimal(str(warning_multiplier)):
        return "warning"
    return "ok"


def list_components_with_reorder_status(
    session: Session,
    company_id: int,
    status: Optional[ReorderStatus] = None,
    brand_id: Optional[int] = None,
    location_id: Optional[int] = None,
    warning_multiplier: Optional[float] = None,
) -> list[ComponentStatus]:
    """Active components with on-hand and reorder status, optionally filtered by status."""
    if warning_multiplier is None:
        from stockledger.db.repositories.settings_repo import get_company_settings

        warning_multiplier = get_company_settings(session, company_id).reorder_warning_multiplier

    q = select(Component).where(Component.company_id == company_id, Component.is_active.is_(True))
    if brand_id is not None:
        q = q.where(Component.brand_id == brand_id)
    components = list(session.scalars(q.order_by(Component.name)).all())
    quantities = get_component_quantities(session, company_id, [c.id for c in components], location_id)

    rows = []
    for c in components:
        on_hand = quantities[c.id]
        row_status = calculate_reorder_status(on_hand, c.reorder_point, warning_multiplier)
        if status is not None and row_status != status:
            continue
        rows.append(
            ComponentStatus(
                component_id=c.id,
                name=c.name,
                sku_code=c.sku_code,
                quantity_on_hand=on_hand,
                reorder_point=c.reorder_point,
                status=row_status,
            )
        )
    return rows


def _expected_component_balances(session: Session, company_id: int) -> dict[tuple[int, int], Decimal]:
    q = (
        select(TransactionLine.component_id, TransactionLine.location_id, func.sum(TransactionLine.quantity_change))
        .join(Transaction, Transaction.id == TransactionLine.transaction_id)
        .where(Transaction.company_id == company_id)
        .group_by(TransactionLine.component_id, TransactionLine.location_id)
    )
    return {(cid, lid): Decimal(total or 0) for cid, lid, total in session.execute(q)}


def _expected_sku_balances(session: Session, company_id: int) -> dict[tuple[int, int], Decimal]:
    q = (
        select(FinishedGoodsLine.sku_id, FinishedGoodsLine.location_id, func.sum(FinishedGoodsLine.quantity_change))
        .join(Transaction, Transaction.id == FinishedGoodsLine.transaction_id)
        .where(Transaction.company_id == company_id)
        .group_by(FinishedGoodsLine.sku_id, FinishedGoodsLine.location_id)
    )
    return {(sid, lid): Decimal(total or 0) for sid, lid, total in session.execute(q)}


def find_balance_drift(session: Session, company_id: int) -> list[BalanceDrift]:
    """Compare materialized balances against the sum of their ledger lines."""
    drift: list[BalanceDrift] = []

    expected = _expected_component_balances(session, company_id)
    stored_rows = session.execute(
        select(InventoryBalance.component_id, InventoryBalance.location_id, InventoryBalance.quantity)
        .join(Component, Component.id == InventoryBalance.component_id)
        .where(Component.company_id == company_id)
    )
    stored = {(cid, lid): Decimal(qty) for cid, lid, qty in stored_rows}
    for key in sorted(set(expected) | set(stored)):
        want, have = expected.get(key, ZERO), stored.get(key, ZERO)
        if want != have:
            drift.append(BalanceDrift(kind="component", item_id=key[0], location_id=key[1], stored=have, expected=want))

    expected = _expected_sku_balances(session, company_id)
    stored_rows = session.execute(
        select(FinishedGoodsBalance.sku_id, FinishedGoodsBalance.location_id, FinishedGoodsBalance.quantity)
        .join(Sku, Sku.id == FinishedGoodsBalance.sku_id)
        .where(Sku.company_id == company_id)
    )
    stored = {(sid, lid): Decimal(qty) for sid, lid, qty in stored_rows}
    for key in sorted(set(expected) | set(stored)):
        want, have = expected.get(key, ZERO), stored.get(key, ZERO)
        if want != have:
            drift.append(BalanceDrift(kind="sku", item_id=key[0], location_id=key[1], stored=have, expected=want))

    return drift


def rebuild_balances(session: Session, company_id: int) -> list[BalanceDrift]:
    """Correct every drifted balance by the difference to its ledger sum. Returns what was fixed."""
    drift = find_balance_drift(session, company_id)
    for d in drift:
        delta = d.expected - d.stored
        if d.kind == "component":
            apply_component_delta(session, d.item_id, d.location_id, delta)
        else:
            apply_sku_delta(session, d.item_id, d.location_id, delta)
    if drift:
        logger.warning("balances.rebuilt", company_id=company_id, fixed=len(drift))
    return drift
