"""Defect threshold and alert repository."""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockledger.db.models.alert import DefectAlert, DefectThreshold


def find_applicable_threshold(session: Session, company_id: int, sku_id: int) -> Optional[DefectThreshold]:
    """Active SKU-specific threshold, else the active company-wide one."""
    base = select(DefectThreshold).where(
        DefectThreshold.company_id == company_id, DefectThreshold.is_active.is_(True)
    )
    specific = session.scalars(base.where(DefectThreshold.sku_id == sku_id).order_by(DefectThreshold.id)).first()
    if specific is not None:
        return specific
    return session.scalars(base.where(DefectThreshold.sku_id.is_(None)).order_by(DefectThreshold.id)).first()


def create_alert(
    session: Session,
    company_id: int,
    threshold_id: int,
    transaction_id: int,
    sku_id: int,
    defect_rate: Decimal,
    threshold_value: Decimal,
    severity: str,
) -> DefectAlert:
    alert = DefectAlert(
        company_id=company_id,
        threshold_id=threshold_id,
        transaction_id=transaction_id,
        sku_id=sku_id,
        defect_rate=defect_rate,
        threshold_value=threshold_value,
        severity=severity,
    )
    session.add(alert)
    session.flush()
    return alert


def list_alerts(session: Session, company_id: int, sku_id: Optional[int] = None) -> list[DefectAlert]:
    q = select(DefectAlert).where(DefectAlert.company_id == company_id)
    if sku_id is not None:
        q = q.where(DefectAlert.sku_id == sku_id)
    return list(session.scalars(q.order_by(DefectAlert.id.desc())).all())
