"""ORM models for bills of materials: BomVersion, BomLine."""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.db.base import QUANTITY, Base, TimestampMixin


class BomVersion(Base, TimestampMixin):
    """A versioned recipe for one SKU. At most one version per SKU is active."""

    __tablename__ = "bom_versions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sku_id: Mapped[int] = mapped_column(ForeignKey("skus.id"), nullable=False, index=True)
    version_name: Mapped[str] = mapped_column(String(64), nullable=False)
    effective_start_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    effective_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    sku: Mapped["Sku"] = relationship("Sku", back_populates="bom_versions")  # noqa: F821
    lines: Mapped[list["BomLine"]] = relationship(
        "BomLine", back_populates="bom_version", cascade="all, delete-orphan", order_by="BomLine.id"
    )


class BomLine(Base, TimestampMixin):
    __tablename__ = "bom_lines"
    __table_args__ = (UniqueConstraint("bom_version_id", "component_id", name="uq_bom_line_component"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    bom_version_id: Mapped[int] = mapped_column(ForeignKey("bom_versions.id"), nullable=False, index=True)
    component_id: Mapped[int] = mapped_column(ForeignKey("components.id"), nullable=False, index=True)
    quantity_per_unit: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)

    bom_version: Mapped["BomVersion"] = relationship("BomVersion", back_populates="lines")
