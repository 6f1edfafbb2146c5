"""Location repository: active-location lookups and default location resolution."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.db.models.master import LOCATION_FINISHED_GOODS, Location
from stockledger.errors import NotFoundError


def get_active_location(session: Session, company_id: int, location_id: int) -> Location:
    """Return the location or raise NotFoundError if missing, inactive or owned by another company."""
    location = session.get(Location, location_id)
    if location is None or location.company_id != company_id or not location.is_active:
        raise NotFoundError("Location", location_id)
    return location


def get_default_location(session: Session, company_id: int) -> Optional[Location]:
    q = (
        select(Location)
        .where(Location.company_id == company_id, Location.is_default.is_(True), Location.is_active.is_(True))
        .order_by(Location.id)
    )
    return session.scalars(q).first()


def get_finished_goods_location(session: Session, company_id: int) -> Optional[Location]:
    """First active location typed for finished goods, by id."""
    q = (
        select(Location)
        .where(
            Location.company_id == company_id,
            Location.type == LOCATION_FINISHED_GOODS,
            Location.is_active.is_(True),
        )
        .order_by(Location.id)
    )
    return session.scalars(q).first()
