"""ORM models for materialized stock: balances, lots and lot balances."""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.db.base import QUANTITY, Base, TimestampMixin


class InventoryBalance(Base, TimestampMixin):
    """Running component quantity at a location. Equals the sum of its transaction lines."""

    __tablename__ = "inventory_balances"
    __table_args__ = (UniqueConstraint("component_id", "location_id", name="uq_inventory_balance_component_location"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    component_id: Mapped[int] = mapped_column(ForeignKey("components.id"), nullable=False, index=True)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False, index=True)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))


class FinishedGoodsBalance(Base, TimestampMixin):
    """Running SKU quantity at a location. Equals the sum of its finished goods lines."""

    __tablename__ = "finished_goods_balances"
    __table_args__ = (UniqueConstraint("sku_id", "location_id", name="uq_finished_goods_balance_sku_location"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sku_id: Mapped[int] = mapped_column(ForeignKey("skus.id"), nullable=False, index=True)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False, index=True)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))


class Lot(Base, TimestampMixin):
    """A received batch of one component, optionally with an expiry date."""

    __tablename__ = "lots"
    __table_args__ = (UniqueConstraint("component_id", "lot_number", name="uq_lot_component_number"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    component_id: Mapped[int] = mapped_column(ForeignKey("components.id"), nullable=False, index=True)
    lot_number: Mapped[str] = mapped_column(String(128), nullable=False)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    received_quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))
    supplier: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

    balance: Mapped[Optional["LotBalance"]] = relationship("LotBalance", back_populates="lot", uselist=False)


class LotBalance(Base, TimestampMixin):
    """Remaining quantity of a lot (1:1)."""

    __tablename__ = "lot_balances"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    lot_id: Mapped[int] = mapped_column(ForeignKey("lots.id"), nullable=False, unique=True)
    quantity: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))

    lot: Mapped["Lot"] = relationship("Lot", back_populates="balance")
