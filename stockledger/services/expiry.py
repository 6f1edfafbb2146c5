"""Lot expiry helpers. A lot is expired once its expiry date is strictly before today."""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from stockledger.db.repositories import lot_repo
from stockledger.db.repositories.settings_repo import get_company_settings
from stockledger.models.outputs import ExpiringLot, ExpiryStatus


def is_lot_expired(expiry_date: Optional[date], today: Optional[date] = None) -> bool:
    if expiry_date is None:
        return False
    return expiry_date < (today or date.today())


def is_lot_expiring_soon(expiry_date: Optional[date], warning_days: int = 30, today: Optional[date] = None) -> bool:
    """Not yet expired and expiring within warning_days (inclusive)."""
    if expiry_date is None:
        return False
    today = today or date.today()
    return today <= expiry_date <= today + timedelta(days=warning_days)


def calculate_expiry_status(
    expiry_date: Optional[date], warning_days: int = 30, today: Optional[date] = None
) -> ExpiryStatus:
    if is_lot_expired(expiry_date, today):
        return "expired"
    if is_lot_expiring_soon(expiry_date, warning_days, today):
        return "expiring_soon"
    return "ok"


def days_until_expiry(expiry_date: date, today: Optional[date] = None) -> int:
    """Negative once expired."""
    return (expiry_date - (today or date.today())).days


def get_expiring_lots(
    session: Session,
    company_id: int,
    warning_days: Optional[int] = None,
    today: Optional[date] = None,
    include_expired: bool = False,
) -> list[ExpiringLot]:
    """Lots with stock that expire within the warning window (company default when not given)."""
    today = today or date.today()
    if warning_days is None:
        warning_days = get_company_settings(session, company_id).expiry_warning_days
    cutoff = today + timedelta(days=warning_days)
    rows = lot_repo.list_lots_expiring_before(
        session, company_id, cutoff, on_or_after=None if include_expired else today
    )
    return [
        ExpiringLot(
            lot_id=lot.id,
            lot_number=lot.lot_number,
            component_id=component.id,
            component_name=component.name,
            expiry_date=lot.expiry_date,
            quantity=quantity,
            days_until_expiry=days_until_expiry(lot.expiry_date, today),
            status=calculate_expiry_status(lot.expiry_date, warning_days, today),
        )
        for lot, component, quantity in rows
    ]


def get_expired_lot_count(session: Session, company_id: int, today: Optional[date] = None) -> int:
    return lot_repo.count_lots_expired_before(session, company_id, today or date.today())
