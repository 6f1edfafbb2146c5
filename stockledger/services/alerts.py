"""Defect-rate alerting for builds."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.orm import Session

from stockledger.db import get_session
from stockledger.db.models.alert import SEVERITY_CRITICAL, SEVERITY_WARNING
from stockledger.db.models.transaction import TYPE_BUILD, Transaction
from stockledger.db.repositories import alert_repo
from stockledger.db.repositories.settings_repo import get_company_settings
from stockledger.errors import NotFoundError
from stockledger.models.outputs import DefectAlertResult
from stockledger.utils.logger import get_logger

logger = get_logger("stockledger.services.alerts")

_RATE_PLACES = Decimal("0.0001")


def calculate_defect_rate(defect_count: int, units: int) -> Decimal:
    """Defective units as a percentage of units built."""
    if units <= 0:
        return Decimal("0")
    rate = Decimal(defect_count) / Decimal(units) * 100
    return rate.quantize(_RATE_PLACES, rounding=ROUND_HALF_UP)


def evaluate_defect_threshold(
    session: Session,
    company_id: int,
    sku_id: int,
    transaction_id: int,
    defect_rate: Decimal,
) -> Optional[DefectAlertResult]:
    """Create an alert when defect_rate exceeds the applicable threshold; None otherwise."""
    settings = get_company_settings(session, company_id)
    if not settings.enable_defect_alerts:
        return None

    threshold = alert_repo.find_applicable_threshold(session, company_id, sku_id)
    if threshold is None:
        return None
    if defect_rate <= threshold.defect_rate_limit:
        return None

    severity = (
        SEVERITY_CRITICAL
        if defect_rate >= Decimal(str(settings.defect_rate_critical_threshold))
        else SEVERITY_WARNING
    )
    alert = alert_repo.create_alert(
        session,
        company_id=company_id,
        threshold_id=threshold.id,
        transaction_id=transaction_id,
        sku_id=sku_id,
        defect_rate=defect_rate,
        threshold_value=threshold.defect_rate_limit,
        severity=severity,
    )
    logger.warning(
        "defect_alert.created",
        transaction_id=transaction_id,
        sku_id=sku_id,
        defect_rate=str(defect_rate),
        threshold=str(threshold.defect_rate_limit),
        severity=severity,
    )
    return DefectAlertResult.model_validate(alert)


def evaluate_build_defects(transaction_id: int) -> Optional[DefectAlertResult]:
    """Evaluate a committed build's defect count in its own session."""
    with get_session() as session:
        txn = session.get(Transaction, transaction_id)
        if txn is None or txn.type != TYPE_BUILD:
            raise NotFoundError("Build transaction", transaction_id)
        if not txn.defect_count or not txn.units_built or txn.sku_id is None:
            return None
        rate = calculate_defect_rate(txn.defect_count, txn.units_built)
        return evaluate_defect_threshold(session, txn.company_id, txn.sku_id, txn.id, rate)


def list_defect_alerts(company_id: int, sku_id: Optional[int] = None) -> list[DefectAlertResult]:
    with get_session() as session:
        return [DefectAlertResult.model_validate(a) for a in alert_repo.list_alerts(session, company_id, sku_id)]
