"""BOM repository: versions and their lines joined with component data."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.db.models.bom import BomLine, BomVersion
from stockledger.db.models.master import Component, Sku
from stockledger.errors import NotFoundError


def get_active_bom_version(session: Session, sku_id: int) -> Optional[BomVersion]:
    q = (
        select(BomVersion)
        .where(BomVersion.sku_id == sku_id, BomVersion.is_active.is_(True))
        .order_by(BomVersion.effective_start_date.desc(), BomVersion.id.desc())
    )
    return session.scalars(q).first()


def resolve_bom_version(
    session: Session, company_id: int, sku_id: int, bom_version_id: Optional[int] = None
) -> BomVersion:
    """Explicit version (must belong to the SKU) or the SKU's active one."""
    sku = session.get(Sku, sku_id)
    if sku is None or sku.company_id != company_id:
        raise NotFoundError("SKU", sku_id)
    if bom_version_id is not None:
        bom = session.get(BomVersion, bom_version_id)
        if bom is None or bom.sku_id != sku_id:
            raise NotFoundError("BOM version", bom_version_id)
        return bom
    bom = get_active_bom_version(session, sku_id)
    if bom is None:
        raise NotFoundError("Active BOM for SKU", sku_id)
    return bom


def get_bom_version(session: Session, bom_version_id: int, company_id: Optional[int] = None) -> BomVersion:
    """Return the version or raise NotFoundError; with company_id, its SKU must belong to that company."""
    bom = session.get(BomVersion, bom_version_id)
    if bom is None or (company_id is not None and bom.sku.company_id != company_id):
        raise NotFoundError("BOM version", bom_version_id)
    return bom


def get_bom_lines(session: Session, bom_version_id: int) -> list[tuple[BomLine, Component]]:
    """BOM lines with their components (current cost, names), in line order."""
    q = (
        select(BomLine, Component)
        .join(Component, Component.id == BomLine.component_id)
        .where(BomLine.bom_version_id == bom_version_id)
        .order_by(BomLine.id)
    )
    return [(line, component) for line, component in session.execute(q)]
