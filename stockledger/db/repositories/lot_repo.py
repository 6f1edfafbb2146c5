"""Lot repository: lot creation, lot balances and lot-level queries."""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from stockledger.db.base import utcnow
from stockledger.db.models.inventory import Lot, LotBalance
from stockledger.db.models.master import Component, Sku
from stockledger.db.models.transaction import TYPE_BUILD, Transaction, TransactionLine
from stockledger.db.repositories.balance_repo import upsert_increment


def get_or_create_lot(
    session: Session,
    component_id: int,
    lot_number: str,
    expiry_date: Optional[date] = None,
    supplier: Optional[str] = None,
) -> Lot:
    """Find the lot by (component, lot_number) or create it. Expiry/supplier are only set on create."""
    q = select(Lot).where(Lot.component_id == component_id, Lot.lot_number == lot_number)
    lot = session.scalars(q).first()
    if lot is not None:
        return lot
    lot = Lot(
        component_id=component_id,
        lot_number=lot_number,
        expiry_date=expiry_date,
        supplier=supplier,
        received_quantity=Decimal("0"),
    )
    session.add(lot)
    session.flush()
    return lot


def receive_into_lot(session: Session, lot_id: int, quantity: Decimal) -> None:
    """Raise received quantity and remaining balance by the same amount."""
    session.execute(
        update(Lot)
        .where(Lot.id == lot_id)
        .values(received_quantity=Lot.received_quantity + quantity, updated_at=utcnow())
    )
    apply_lot_delta(session, lot_id, quantity)


def apply_lot_delta(session: Session, lot_id: int, delta: Decimal) -> None:
    upsert_increment(session, LotBalance, {"lot_id": lot_id}, delta)


def list_lots_with_balance(session: Session, component_id: int) -> list[tuple[Lot, Decimal]]:
    """Lots of a component with positive remaining balance (unsorted)."""
    q = (
        select(Lot, LotBalance.quantity)
        .join(LotBalance, LotBalance.lot_id == Lot.id)
        .where(Lot.component_id == component_id, LotBalance.quantity > 0)
    )
    return [(lot, Decimal(qty)) for lot, qty in session.execute(q)]


def get_lots_with_balance(session: Session, lot_ids: Iterable[int]) -> dict[int, tuple[Lot, Decimal]]:
    """Lots by id with their remaining balance (zero when no balance row)."""
    ids = list(dict.fromkeys(lot_ids))
    if not ids:
        return {}
    q = (
        select(Lot, func.coalesce(LotBalance.quantity, 0))
        .outerjoin(LotBalance, LotBalance.lot_id == Lot.id)
        .where(Lot.id.in_(ids))
    )
    return {lot.id: (lot, Decimal(qty or 0)) for lot, qty in session.execute(q)}


def list_lots_expiring_before(
    session: Session, company_id: int, cutoff: date, on_or_after: Optional[date] = None
) -> list[tuple[Lot, Component, Decimal]]:
    """Lots with stock whose expiry is on or before cutoff, earliest first."""
    q = (
        select(Lot, Component, LotBalance.quantity)
        .join(LotBalance, LotBalance.lot_id == Lot.id)
        .join(Component, Component.id == Lot.component_id)
        .where(
            Component.company_id == company_id,
            Lot.expiry_date.is_not(None),
            Lot.expiry_date <= cutoff,
            LotBalance.quantity > 0,
        )
        .order_by(Lot.expiry_date, Lot.id)
    )
    if on_or_after is not None:
        q = q.where(Lot.expiry_date >= on_or_after)
    return [(lot, component, Decimal(qty)) for lot, component, qty in session.execute(q)]


def count_lots_expired_before(session: Session, company_id: int, today: date) -> int:
    q = (
        select(func.count(Lot.id))
        .join(LotBalance, LotBalance.lot_id == Lot.id)
        .join(Component, Component.id == Lot.component_id)
        .where(
            Component.company_id == company_id,
            Lot.expiry_date.is_not(None),
            Lot.expiry_date < today,
            LotBalance.quantity > 0,
        )
    )
    return int(session.scalar(q) or 0)


def list_skus_built_from_lot(session: Session, lot_id: int) -> list[tuple[Sku, Decimal, int]]:
    """SKUs whose builds consumed this lot, with total quantity used and number of builds."""
    q = (
        select(
            Sku,
            func.sum(TransactionLine.quantity_change),
            func.count(func.distinct(Transaction.id)),
        )
        .join(Transaction, Transaction.id == TransactionLine.transaction_id)
        .join(Sku, Sku.id == Transaction.sku_id)
        .where(TransactionLine.lot_id == lot_id, Transaction.type == TYPE_BUILD)
        .group_by(Sku.id)
        .order_by(Sku.name)
    )
    return [(sku, -Decimal(total or 0), int(count)) for sku, total, count in session.execute(q)]
