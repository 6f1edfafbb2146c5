"""ORM models for quality alerting: DefectThreshold, DefectAlert."""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import QUANTITY, Base, TimestampMixin

SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"


class DefectThreshold(Base, TimestampMixin):
    """Defect rate limit (percent). sku_id NULL means company-wide."""

    __tablename__ = "defect_thresholds"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    sku_id: Mapped[Optional[int]] = mapped_column(ForeignKey("skus.id"), nullable=True, index=True)
    defect_rate_limit: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class DefectAlert(Base, TimestampMixin):
    """Raised after a build whose defect rate exceeded its threshold."""

    __tablename__ = "defect_alerts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    threshold_id: Mapped[int] = mapped_column(ForeignKey("defect_thresholds.id"), nullable=False)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), nullable=False, index=True)
    sku_id: Mapped[int] = mapped_column(ForeignKey("skus.id"), nullable=False)
    defect_rate: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    threshold_value: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False, default=SEVERITY_WARNING)
