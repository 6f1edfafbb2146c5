"""Transaction writer: receipts, adjustments, opening balances, transfers and outbound shipments.

Every write runs in one session unit: transaction row, then line rows, then
balance and lot updates. Any exception rolls the whole unit back.
"""

from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.db import get_session
from stockledger.db.models.inventory import FinishedGoodsBalance, InventoryBalance
from stockledger.db.models.master import Component, Location, Sku
from stockledger.db.models.transaction import (
    TYPE_ADJUSTMENT,
    TYPE_INITIAL,
    TYPE_OUTBOUND,
    TYPE_RECEIPT,
    TYPE_TRANSFER,
    FinishedGoodsLine,
    Transaction,
    TransactionLine,
)
from stockledger.db.repositories import lot_repo
from stockledger.db.repositories.balance_repo import ZERO, apply_component_delta, apply_sku_delta
from stockledger.db.repositories.location_repo import (
    get_active_location,
    get_default_location,
    get_finished_goods_location,
)
from stockledger.errors import LedgerValidationError, NotFoundError
from stockledger.models.inputs import (
    AdjustmentInput,
    FinishedGoodsAdjustmentInput,
    FinishedGoodsTransferInput,
    InitialInput,
    OutboundInput,
    ReceiptInput,
    TransactionInput,
    TransferInput,
)
from stockledger.models.outputs import TransactionResult
from stockledger.utils.logger import get_logger, ledger_context

logger = get_logger("stockledger.services.transactions")


def get_default_location_id(company_id: int) -> Optional[int]:
    """Company's active default location, for callers that want to pass it as default_location_id."""
    with get_session() as session:
        location = get_default_location(session, company_id)
        return location.id if location is not None else None


def resolve_location(
    session: Session, company_id: int, location_id: Optional[int], default_location_id: Optional[int]
) -> Location:
    lid = location_id if location_id is not None else default_location_id
    if lid is None:
        raise LedgerValidationError("No location given and no default location configured", code="NO_LOCATION")
    return get_active_location(session, company_id, lid)


def require_component(session: Session, company_id: int, component_id: int) -> Component:
    component = session.get(Component, component_id)
    if component is None or component.company_id != company_id or not component.is_active:
        raise NotFoundError("Component", component_id)
    return component


def _require_sku(session: Session, company_id: int, sku_id: int) -> Sku:
    sku = session.get(Sku, sku_id)
    if sku is None or sku.company_id != company_id or not sku.is_active:
        raise NotFoundError("SKU", sku_id)
    return sku


def _require_nonzero(quantity: Decimal) -> None:
    if quantity == 0:
        raise LedgerValidationError("Quantity must be non-zero", code="INVALID_QUANTITY")


def _require_distinct_locations(from_location_id: int, to_location_id: int) -> None:
    if from_location_id == to_location_id:
        raise LedgerValidationError(
            "Cannot transfer to the same location",
            code="SAME_LOCATION",
            details={"location_id": from_location_id},
        )


def _add_transaction(session: Session, **fields) -> Transaction:
    txn = Transaction(**fields)
    session.add(txn)
    session.flush()
    return txn


def _to_result(session: Session, txn: Transaction) -> TransactionResult:
    session.flush()
    session.refresh(txn)
    return TransactionResult.model_validate(txn)


def _locked_quantity(session: Session, model, key_column, key_value: int, location_id: int) -> Decimal:
    """Balance at one location, row-locked where the backend supports it."""
    q = (
        select(model.quantity)
        .where(key_column == key_value, model.location_id == location_id)
        .with_for_update()
    )
    value = session.scalar(q)
    return Decimal(value) if value is not None else ZERO


def record_receipt(data: ReceiptInput, default_location_id: Optional[int] = None) -> TransactionResult:
    """Stock in. Optionally creates or tops up a lot and updates the component's standing cost."""
    with get_session() as session:
        component = require_component(session, data.company_id, data.component_id)
        location = resolve_location(session, data.company_id, data.location_id, default_location_id)
        cost = data.cost_per_unit if data.cost_per_unit is not None else component.cost_per_unit

        txn = _add_transaction(
            session,
            company_id=data.company_id,
            type=TYPE_RECEIPT,
            date=data.date,
            location_id=location.id,
            supplier=data.supplier,
            notes=data.notes,
        )
        lot_id = None
        if data.lot_number:
            lot = lot_repo.get_or_create_lot(
                session, component.id, data.lot_number, expiry_date=data.expiry_date, supplier=data.supplier
            )
            lot_id = lot.id
        session.add(
            TransactionLine(
                transaction_id=txn.id,
                component_id=component.id,
                location_id=location.id,
                quantity_change=data.quantity,
                cost_per_unit=cost,
                lot_id=lot_id,
            )
        )
        session.flush()
        apply_component_delta(session, component.id, location.id, data.quantity)
        if lot_id is not None:
            lot_repo.receive_into_lot(session, lot_id, data.quantity)
        if data.update_component_cost and data.cost_per_unit is not None:
            component.cost_per_unit = data.cost_per_unit
        result = _to_result(session, txn)

    logger.info(
        "transaction.receipt.recorded",
        transaction_id=result.id,
        component_id=data.component_id,
        quantity=str(data.quantity),
        lot_id=lot_id,
    )
    return result


def record_adjustment(data: AdjustmentInput, default_location_id: Optional[int] = None) -> TransactionResult:
    _require_nonzero(data.quantity)
    with get_session() as session:
        component = require_component(session, data.company_id, data.component_id)
        location = resolve_location(session, data.company_id, data.location_id, default_location_id)
        txn = _add_transaction(
            session,
            company_id=data.company_id,
            type=TYPE_ADJUSTMENT,
            date=data.date,
            location_id=location.id,
            reason=data.reason,
            notes=data.notes,
        )
        session.add(
            TransactionLine(
                transaction_id=txn.id,
                component_id=component.id,
                location_id=location.id,
                quantity_change=data.quantity,
                cost_per_unit=component.cost_per_unit,
            )
        )
        session.flush()
        apply_component_delta(session, component.id, location.id, data.quantity)
        result = _to_result(session, txn)

    logger.info("transaction.adjustment.recorded", transaction_id=result.id, quantity=str(data.quantity))
    return result


def record_initial(data: InitialInput, default_location_id: Optional[int] = None) -> TransactionResult:
    """Opening balance. Composes with whatever is already on hand."""
    _require_nonzero(data.quantity)
    with get_session() as session:
        component = require_component(session, data.company_id, data.component_id)
        location = resolve_location(session, data.company_id, data.location_id, default_location_id)
        cost = data.cost_per_unit if data.cost_per_unit is not None else component.cost_per_unit
        txn = _add_transaction(
            session,
            company_id=data.company_id,
            type=TYPE_INITIAL,
            date=data.date,
            location_id=location.id,
            notes=data.notes,
        )
        session.add(
            TransactionLine(
                transaction_id=txn.id,
                component_id=component.id,
                location_id=location.id,
                quantity_change=data.quantity,
                cost_per_unit=cost,
            )
        )
        session.flush()
        apply_component_delta(session, component.id, location.id, data.quantity)
        if data.update_component_cost and data.cost_per_unit is not None:
            component.cost_per_unit = data.cost_per_unit
        result = _to_result(session, txn)

    logger.info("transaction.initial.recorded", transaction_id=result.id, quantity=str(data.quantity))
    return result


def record_transfer(data: TransferInput, default_location_id: Optional[int] = None) -> TransactionResult:
    """Move stock between two locations: -Q at the source and +Q at the destination."""
    _require_distinct_locations(data.from_location_id, data.to_location_id)
    with get_session() as session:
        component = require_component(session, data.company_id, data.component_id)
        source = get_active_location(session, data.company_id, data.from_location_id)
        destination = get_active_location(session, data.company_id, data.to_location_id)

        available = _locked_quantity(
            session, InventoryBalance, InventoryBalance.component_id, component.id, source.id
        )
        if available < data.quantity:
            raise LedgerValidationError(
                f"Insufficient inventory at source location. Available: {available}, Required: {data.quantity}",
                code="INSUFFICIENT_INVENTORY",
                details={"available": str(available), "required": str(data.quantity)},
            )

        txn = _add_transaction(
            session,
            company_id=data.company_id,
            type=TYPE_TRANSFER,
            date=data.date,
            from_location_id=source.id,
            to_location_id=destination.id,
            notes=data.notes,
        )
        for location_id, change in ((source.id, -data.quantity), (destination.id, data.quantity)):
            session.add(
                TransactionLine(
                    transaction_id=txn.id,
                    component_id=component.id,
                    location_id=location_id,
                    quantity_change=change,
                    cost_per_unit=component.cost_per_unit,
                )
            )
        session.flush()
        apply_component_delta(session, component.id, source.id, -data.quantity)
        apply_component_delta(session, component.id, destination.id, data.quantity)
        result = _to_result(session, txn)

    logger.info(
        "transaction.transfer.recorded",
        transaction_id=result.id,
        from_location_id=data.from_location_id,
        to_location_id=data.to_location_id,
        quantity=str(data.quantity),
    )
    return result


def record_finished_goods_adjustment(
    data: FinishedGoodsAdjustmentInput, default_location_id: Optional[int] = None
) -> TransactionResult:
    _require_nonzero(data.quantity)
    with get_session() as session:
        sku = _require_sku(session, data.company_id, data.sku_id)
        location = resolve_location(session, data.company_id, data.location_id, default_location_id)
        txn = _add_transaction(
            session,
            company_id=data.company_id,
            type=TYPE_ADJUSTMENT,
            date=data.date,
            location_id=location.id,
            sku_id=sku.id,
            reason=data.reason,
            notes=data.notes,
        )
        session.add(
            FinishedGoodsLine(
                transaction_id=txn.id, sku_id=sku.id, location_id=location.id, quantity_change=data.quantity
            )
        )
        session.flush()
        apply_sku_delta(session, sku.id, location.id, data.quantity)
        result = _to_result(session, txn)

    logger.info("transaction.fg_adjustment.recorded", transaction_id=result.id, sku_id=data.sku_id)
    return result


def record_finished_goods_transfer(
    data: FinishedGoodsTransferInput, default_location_id: Optional[int] = None
) -> TransactionResult:
    _require_distinct_locations(data.from_location_id, data.to_location_id)
    with get_session() as session:
        sku = _require_sku(session, data.company_id, data.sku_id)
        source = get_active_location(session, data.company_id, data.from_location_id)
        destination = get_active_location(session, data.company_id, data.to_location_id)

        available = _locked_quantity(session, FinishedGoodsBalance, FinishedGoodsBalance.sku_id, sku.id, source.id)
        if available < data.quantity:
            raise LedgerValidationError(
                f"Insufficient finished goods at source location. Available: {available}, Required: {data.quantity}",
                code="INSUFFICIENT_INVENTORY",
                details={"available": str(available), "required": str(data.quantity)},
            )

        txn = _add_transaction(
            session,
            company_id=data.company_id,
            type=TYPE_TRANSFER,
            date=data.date,
            sku_id=sku.id,
            from_location_id=source.id,
            to_location_id=destination.id,
            notes=data.notes,
        )
        for location_id, change in ((source.id, -data.quantity), (destination.id, data.quantity)):
            session.add(
                FinishedGoodsLine(transaction_id=txn.id, sku_id=sku.id, location_id=location_id, quantity_change=change)
            )
        session.flush()
        apply_sku_delta(session, sku.id, source.id, -data.quantity)
        apply_sku_delta(session, sku.id, destination.id, data.quantity)
        result = _to_result(session, txn)

    logger.info("transaction.fg_transfer.recorded", transaction_id=result.id, sku_id=data.sku_id)
    return result


def _resolve_outbound_location(
    session: Session, company_id: int, location_id: Optional[int], default_location_id: Optional[int]
) -> Location:
    """Explicit location, else the first finished-goods location, else the default."""
    if location_id is not None:
        return get_active_location(session, company_id, location_id)
    fg_location = get_finished_goods_location(session, company_id)
    if fg_location is not None:
        return fg_location
    return resolve_location(session, company_id, None, default_location_id)


def record_outbound(data: OutboundInput, default_location_id: Optional[int] = None) -> TransactionResult:
    """Ship finished goods out through a sales channel. Refused when the location holds too few units."""
    with get_session() as session:
        sku = _require_sku(session, data.company_id, data.sku_id)
        location = _resolve_outbound_location(session, data.company_id, data.location_id, default_location_id)
        quantity = Decimal(data.quantity)

        available = _locked_quantity(
            session, FinishedGoodsBalance, FinishedGoodsBalance.sku_id, sku.id, location.id
        )
        if available < quantity:
            raise LedgerValidationError(
                f"Insufficient finished goods at location. Available: {available}, Required: {quantity}",
                code="INSUFFICIENT_INVENTORY",
                details={"available": str(available), "required": str(quantity), "location_id": location.id},
            )

        txn = _add_transaction(
            session,
            company_id=data.company_id,
            type=TYPE_OUTBOUND,
            date=data.date,
            location_id=location.id,
            sku_id=sku.id,
            sales_channel=data.sales_channel,
            notes=data.notes,
        )
        session.add(
            FinishedGoodsLine(transaction_id=txn.id, sku_id=sku.id, location_id=location.id, quantity_change=-quantity)
        )
        session.flush()
        apply_sku_delta(session, sku.id, location.id, -quantity)
        result = _to_result(session, txn)

    logger.info(
        "transaction.outbound.recorded",
        transaction_id=result.id,
        sku_id=data.sku_id,
        sales_channel=data.sales_channel,
        quantity=data.quantity,
        location_id=result.location_id,
    )
    return result


_WRITERS: dict[str, Callable[..., TransactionResult]] = {
    "receipt": record_receipt,
    "adjustment": record_adjustment,
    "initial": record_initial,
    "transfer": record_transfer,
    "finished_goods_adjustment": record_finished_goods_adjustment,
    "finished_goods_transfer": record_finished_goods_transfer,
    "outbound": record_outbound,
}


def record_transaction(data: TransactionInput, default_location_id: Optional[int] = None) -> TransactionResult:
    """Dispatch a tagged transaction input to its writer."""
    with ledger_context(company_id=data.company_id, kind=data.kind):
        return _WRITERS[data.kind](data, default_location_id=default_location_id)
