"""Forecast repository: per-company config row and consumption aggregates."""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockledger.db.models.forecast import ForecastConfig
from stockledger.db.models.transaction import STATUS_APPROVED, TYPE_TRANSFER, Transaction, TransactionLine


def get_config_row(session: Session, company_id: int) -> Optional[ForecastConfig]:
    return session.scalars(select(ForecastConfig).where(ForecastConfig.company_id == company_id)).first()


def save_config_row(
    session: Session,
    company_id: int,
    lookback_days: int,
    safety_days: int,
    excluded_transaction_types: list[str],
) -> ForecastConfig:
    row = get_config_row(session, company_id)
    if row is None:
        row = ForecastConfig(company_id=company_id)
        session.add(row)
    row.lookback_days = lookback_days
    row.safety_days = safety_days
    row.excluded_transaction_types = list(excluded_transaction_types)
    session.flush()
    return row


def sum_consumption(
    session: Session,
    component_ids: Iterable[int],
    since: date,
    until: date,
    excluded_types: Iterable[str],
    location_id: Optional[int] = None,
) -> dict[int, Decimal]:
    """Absolute sum of negative approved lines dated in [since, until], per component.

    Without a location, transfers are left out entirely since they net to zero
    across locations. With a location, its outgoing transfer lines count unless
    'transfer' is among the excluded types.
    """
    ids = list(dict.fromkeys(component_ids))
    result = {cid: Decimal("0") for cid in ids}
    if not ids:
        return result

    excluded = set(excluded_types)
    if location_id is None:
        excluded.add(TYPE_TRANSFER)

    q = (
        select(TransactionLine.component_id, func.sum(TransactionLine.quantity_change))
        .join(Transaction, Transaction.id == TransactionLine.transaction_id)
        .where(
            TransactionLine.component_id.in_(ids),
            TransactionLine.quantity_change < 0,
            Transaction.status == STATUS_APPROVED,
            Transaction.date >= since,
            Transaction.date <= until,
        )
        .group_by(TransactionLine.component_id)
    )
    if excluded:
        q = q.where(Transaction.type.not_in(sorted(excluded)))
    if location_id is not None:
        q = q.where(TransactionLine.location_id == location_id)
    for component_id, total in session.execute(q):
        result[component_id] = abs(Decimal(total or 0))
    return result
