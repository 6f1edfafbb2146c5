"""Build orchestration: consume components through a BOM and credit finished goods.

Pipeline: resolve BOM, sufficiency gate, expiry gate, atomic commit, then a
best-effort defect alert. The gates run before the commit and are advisory;
the commit re-checks sufficiency against locked rows unless overridden.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.db import get_session
from stockledger.db.models.bom import BomLine
from stockledger.db.models.inventory import InventoryBalance
from stockledger.db.models.master import Component, Sku
from stockledger.db.models.transaction import TYPE_BUILD, FinishedGoodsLine, Transaction, TransactionLine
from stockledger.db.repositories.balance_repo import (
    ZERO,
    apply_component_delta,
    apply_sku_delta,
    get_component_quantities,
)
from stockledger.db.repositories.bom_repo import (
    get_active_bom_version,
    get_bom_lines,
    get_bom_version,
    resolve_bom_version,
)
from stockledger.db.repositories.location_repo import get_active_location
from stockledger.db.repositories.lot_repo import apply_lot_delta
from stockledger.db.repositories.settings_repo import get_company_settings
from stockledger.errors import (
    ExpiredLotsError,
    InsufficientInventoryError,
    LedgerValidationError,
    NotFoundError,
)
from stockledger.models.inputs import BuildRequest, LotOverride
from stockledger.models.outputs import BuildResult, ExpiredLotItem, ShortageItem, TransactionResult
from stockledger.services.alerts import evaluate_build_defects
from stockledger.services.lot_allocator import allocate_lots
from stockledger.utils.logger import get_logger, ledger_context
from stockledger.utils.tracing import get_tracer

logger = get_logger("stockledger.services.build")

BomRows = Sequence[tuple[BomLine, Component]]


def calculate_bom_unit_cost_from_lines(lines: BomRows) -> Decimal:
    return sum((line.quantity_per_unit * component.cost_per_unit for line, component in lines), ZERO)


def calculate_bom_unit_cost(bom_version_id: int) -> Decimal:
    """Sum of quantity per unit times each component's current cost."""
    with get_session() as session:
        bom = get_bom_version(session, bom_version_id)
        return calculate_bom_unit_cost_from_lines(get_bom_lines(session, bom.id))


def calculate_max_buildable_units(sku_id: int, location_id: Optional[int] = None) -> Optional[int]:
    """Units buildable from current stock with the active BOM. None when the SKU has no usable BOM."""
    with get_session() as session:
        sku = session.get(Sku, sku_id)
        if sku is None:
            raise NotFoundError("SKU", sku_id)
        bom = get_active_bom_version(session, sku_id)
        if bom is None:
            return None
        lines = [(line, c) for line, c in get_bom_lines(session, bom.id) if line.quantity_per_unit > 0]
        if not lines:
            return None
        on_hand = get_component_quantities(session, sku.company_id, [c.id for _, c in lines], location_id)
        buildable = min(int(on_hand[c.id] // line.quantity_per_unit) for line, c in lines)
        return max(buildable, 0)


def _locked_quantities(session: Session, component_ids: list[int], location_id: Optional[int]) -> dict[int, Decimal]:
    """Balances summed in Python over rows selected FOR UPDATE (no-op on SQLite)."""
    q = (
        select(InventoryBalance.component_id, InventoryBalance.quantity)
        .where(InventoryBalance.component_id.in_(component_ids))
        .with_for_update()
    )
    if location_id is not None:
        q = q.where(InventoryBalance.location_id == location_id)
    totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for component_id, quantity in session.execute(q):
        totals[component_id] += Decimal(quantity)
    return {cid: totals[cid] for cid in component_ids}


def _find_shortages(
    session: Session,
    company_id: int,
    lines: BomRows,
    units_to_build: int,
    location_id: Optional[int],
    lock: bool = False,
) -> list[ShortageItem]:
    ids = [component.id for _, component in lines]
    if lock:
        available = _locked_quantities(session, ids, location_id)
    else:
        available = get_component_quantities(session, company_id, ids, location_id)
    shortages = []
    for line, component in lines:
        required = line.quantity_per_unit * units_to_build
        have = available.get(component.id, ZERO)
        if have < required:
            shortages.append(
                ShortageItem(
                    component_id=component.id,
                    component_name=component.name,
                    sku_code=component.sku_code,
                    required=required,
                    available=have,
                    shortage=required - have,
                )
            )
    return shortages


def check_insufficient_inventory(
    company_id: int, bom_version_id: int, units_to_build: int, location_id: Optional[int] = None
) -> list[ShortageItem]:
    """Components whose on-hand (at location_id, or globally) is below the requirement."""
    with get_session() as session:
        bom = get_bom_version(session, bom_version_id, company_id)
        return _find_shortages(session, company_id, get_bom_lines(session, bom.id), units_to_build, location_id)


def check_expired_lots(
    bom_version_id: int,
    units_to_build: int,
    lot_overrides: Optional[Sequence[LotOverride]] = None,
    today: Optional[date] = None,
) -> list[ExpiredLotItem]:
    """Expired lots the allocation would consume if expired lots were allowed."""
    items: list[ExpiredLotItem] = []
    with get_session() as session:
        bom = get_bom_version(session, bom_version_id)
        for line, component in get_bom_lines(session, bom.id):
            allocation = allocate_lots(
                session,
                component.id,
                line.quantity_per_unit * units_to_build,
                exclude_expired=False,
                overrides=lot_overrides,
                today=today,
            )
            for lot in allocation.lots:
                if lot.is_expired:
                    items.append(
                        ExpiredLotItem(
                            component_id=component.id,
                            component_name=component.name,
                            sku_code=component.sku_code,
                            lot_id=lot.lot_id,
                            lot_number=lot.lot_number,
                            expiry_date=lot.expiry_date,
                            quantity=lot.quantity,
                        )
                    )
    return items


def _validate_override_components(request: BuildRequest, lines: BomRows) -> None:
    bom_component_ids = {component.id for _, component in lines}
    stray = sorted({o.component_id for o in request.lot_overrides} - bom_component_ids)
    if stray:
        raise LedgerValidationError(
            "Lot overrides reference components that are not in the BOM",
            code="INVALID_LOT_OVERRIDE",
            details={"component_ids": stray},
        )


def _commit_build(
    request: BuildRequest,
    bom_version_id: int,
    source_location_id: int,
    output_location_id: Optional[int],
    allow_insufficient: bool,
) -> TransactionResult:
    """Write the build in one session unit. Any failure leaves no trace."""
    units = request.units_to_build
    with get_session() as session:
        lines = get_bom_lines(session, bom_version_id)
        unit_cost = calculate_bom_unit_cost_from_lines(lines)
        total_cost = unit_cost * units

        source = get_active_location(session, request.company_id, source_location_id)
        output = (
            get_active_location(session, request.company_id, output_location_id)
            if output_location_id is not None
            else None
        )

        if not allow_insufficient:
            shortages = _find_shortages(session, request.company_id, lines, units, source.id, lock=True)
            if shortages:
                raise InsufficientInventoryError(shortages)

        txn = Transaction(
            company_id=request.company_id,
            type=TYPE_BUILD,
            date=request.date,
            location_id=source.id,
            sku_id=request.sku_id,
            bom_version_id=bom_version_id,
            units_built=units,
            unit_bom_cost=unit_cost,
            total_bom_cost=total_cost,
            sales_channel=request.sales_channel,
            defect_count=request.defect_count,
            defect_notes=request.defect_notes,
            affected_units=request.affected_units,
            notes=request.notes,
        )
        session.add(txn)
        session.flush()

        for line, component in lines:
            required = line.quantity_per_unit * units
            allocation = allocate_lots(
                session,
                component.id,
                required,
                exclude_expired=not request.allow_expired_lots,
                overrides=request.lot_overrides,
                today=request.date,
            )
            for lot in allocation.lots:
                session.add(
                    TransactionLine(
                        transaction_id=txn.id,
                        component_id=component.id,
                        location_id=source.id,
                        quantity_change=-lot.quantity,
                        cost_per_unit=component.cost_per_unit,
                        lot_id=lot.lot_id,
                    )
                )
            if allocation.unallocated > 0:
                # Stock not tracked in lots (or lots exhausted) is consumed as one pooled line
                session.add(
                    TransactionLine(
                        transaction_id=txn.id,
                        component_id=component.id,
                        location_id=source.id,
                        quantity_change=-allocation.unallocated,
                        cost_per_unit=component.cost_per_unit,
                    )
                )
            session.flush()
            for lot in allocation.lots:
                apply_lot_delta(session, lot.lot_id, -lot.quantity)
            apply_component_delta(session, component.id, source.id, -required)

        if output is not None:
            fg_quantity = Decimal(request.output_quantity or units)
            session.add(
                FinishedGoodsLine(
                    transaction_id=txn.id,
                    sku_id=request.sku_id,
                    location_id=output.id,
                    quantity_change=fg_quantity,
                    cost_per_unit=unit_cost,
                )
            )
            session.flush()
            apply_sku_delta(session, request.sku_id, output.id, fg_quantity)

        session.flush()
        session.refresh(txn)
        return TransactionResult.model_validate(txn)


def record_build(request: BuildRequest, default_location_id: Optional[int] = None) -> BuildResult:
    """Run the full build pipeline. Raises BuildGateError subclasses when a gate refuses."""
    with ledger_context(company_id=request.company_id, sku_id=request.sku_id, kind=TYPE_BUILD):
        return _run_build(request, default_location_id)


def _run_build(request: BuildRequest, default_location_id: Optional[int]) -> BuildResult:
    tracer = get_tracer()
    log = logger.bind(units=request.units_to_build)

    source_location_id = request.location_id if request.location_id is not None else default_location_id
    if source_location_id is None:
        raise LedgerValidationError("No location given and no default location configured", code="NO_LOCATION")
    output_location_id = None
    if request.output_to_finished_goods:
        output_location_id = request.output_location_id or default_location_id or source_location_id

    with tracer.start_as_current_span("build.record") as span:
        span.set_attribute("stockledger.sku_id", request.sku_id)
        span.set_attribute("stockledger.units_to_build", request.units_to_build)

        with tracer.start_as_current_span("build.resolve_bom"):
            with get_session() as session:
                bom = resolve_bom_version(session, request.company_id, request.sku_id, request.bom_version_id)
                lines = get_bom_lines(session, bom.id)
                if not lines:
                    raise LedgerValidationError(
                        "BOM version has no lines", code="EMPTY_BOM", details={"bom_version_id": bom.id}
                    )
                _validate_override_components(request, lines)
                bom_version_id = bom.id
                settings = get_company_settings(session, request.company_id)

        with tracer.start_as_current_span("build.sufficiency_gate"):
            shortages = check_insufficient_inventory(
                request.company_id, bom_version_id, request.units_to_build, source_location_id
            )
            allow_insufficient = request.allow_insufficient_inventory or settings.allow_negative_inventory
            if shortages and not allow_insufficient:
                log.info("build.gate.insufficient", shortages=len(shortages))
                raise InsufficientInventoryError(shortages)

        with tracer.start_as_current_span("build.expiry_gate"):
            expired = check_expired_lots(
                bom_version_id, request.units_to_build, request.lot_overrides, today=request.date
            )
            if expired:
                if not settings.allow_expired_lot_override:
                    log.info("build.gate.expired", lots=len(expired), can_override=False)
                    raise ExpiredLotsError(expired, can_override=False)
                if not request.allow_expired_lots:
                    log.info("build.gate.expired", lots=len(expired), can_override=True)
                    raise ExpiredLotsError(expired, can_override=True)

        with tracer.start_as_current_span("build.commit"):
            txn = _commit_build(
                request, bom_version_id, source_location_id, output_location_id, allow_insufficient
            )
        span.set_attribute("stockledger.transaction_id", txn.id)
        log.info("build.commit.done", transaction_id=txn.id, lines=len(txn.lines), total_cost=str(txn.total_bom_cost))

    if request.defect_count:
        try:
            evaluate_build_defects(txn.id)
        except Exception:
            log.exception("build.defect_alert.failed", transaction_id=txn.id)

    warning = None
    if shortages:
        warning = f"Build recorded with insufficient inventory for {len(shortages)} component(s)"
    return BuildResult(transaction=txn, insufficient_items=shortages, warning=warning)
