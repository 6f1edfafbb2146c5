"""ORM models for the immutable ledger: Transaction, TransactionLine, FinishedGoodsLine."""

import datetime as dt
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.db.base import QUANTITY, Base, TimestampMixin

TYPE_RECEIPT = "receipt"
TYPE_ADJUSTMENT = "adjustment"
TYPE_INITIAL = "initial"
TYPE_BUILD = "build"
TYPE_TRANSFER = "transfer"
TYPE_OUTBOUND = "outbound"

STATUS_APPROVED = "approved"


class Transaction(Base, TimestampMixin):
    """One immutable ledger event. Never updated after commit."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_APPROVED, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)

    location_id: Mapped[Optional[int]] = mapped_column(ForeignKey("locations.id"), nullable=True)
    from_location_id: Mapped[Optional[int]] = mapped_column(ForeignKey("locations.id"), nullable=True)
    to_location_id: Mapped[Optional[int]] = mapped_column(ForeignKey("locations.id"), nullable=True)

    # Build and outbound fields
    sku_id: Mapped[Optional[int]] = mapped_column(ForeignKey("skus.id"), nullable=True, index=True)
    bom_version_id: Mapped[Optional[int]] = mapped_column(ForeignKey("bom_versions.id"), nullable=True)
    units_built: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    unit_bom_cost: Mapped[Optional[Decimal]] = mapped_column(QUANTITY, nullable=True)
    total_bom_cost: Mapped[Optional[Decimal]] = mapped_column(QUANTITY, nullable=True)
    sales_channel: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    defect_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    defect_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    affected_units: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    supplier: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    lines: Mapped[list["TransactionLine"]] = relationship(
        "TransactionLine", back_populates="transaction", order_by="TransactionLine.id"
    )
    finished_goods_lines: Mapped[list["FinishedGoodsLine"]] = relationship(
        "FinishedGoodsLine", back_populates="transaction", order_by="FinishedGoodsLine.id"
    )


class TransactionLine(Base, TimestampMixin):
    """Signed component movement at one location, with the cost in effect at write time."""

    __tablename__ = "transaction_lines"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), nullable=False, index=True)
    component_id: Mapped[int] = mapped_column(ForeignKey("components.id"), nullable=False, index=True)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False, index=True)
    quantity_change: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    cost_per_unit: Mapped[Optional[Decimal]] = mapped_column(QUANTITY, nullable=True)
    lot_id: Mapped[Optional[int]] = mapped_column(ForeignKey("lots.id"), nullable=True, index=True)

    transaction: Mapped["Transaction"] = relationship("Transaction", back_populates="lines")


class FinishedGoodsLine(Base, TimestampMixin):
    """Signed SKU movement at one location."""

    __tablename__ = "finished_goods_lines"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("transactions.id"), nullable=False, index=True)
    sku_id: Mapped[int] = mapped_column(ForeignKey("skus.id"), nullable=False, index=True)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False, index=True)
    quantity_change: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False)
    cost_per_unit: Mapped[Optional[Decimal]] = mapped_column(QUANTITY, nullable=True)

    transaction: Mapped["Transaction"] = relationship("Transaction", back_populates="finished_goods_lines")
