"""ORM models for master data: Company, Brand, Location, Component, Sku."""

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.db.base import QUANTITY, Base, TimestampMixin

LOCATION_WAREHOUSE = "warehouse"
LOCATION_FINISHED_GOODS = "finished_goods"
LOCATION_TYPES = (LOCATION_WAREHOUSE, "threepl", "fba", LOCATION_FINISHED_GOODS)


class Company(Base, TimestampMixin):
    """Tenant. Policy flags live in the settings JSON (see CompanySettings)."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    settings: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)


class Brand(Base, TimestampMixin):
    __tablename__ = "brands"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Location(Base, TimestampMixin):
    """Physical or logical place holding stock (warehouse, finished goods, 3PL...)."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default=LOCATION_WAREHOUSE)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Component(Base, TimestampMixin):
    """Raw material or packaging item consumed by builds."""

    __tablename__ = "components"
    __table_args__ = (UniqueConstraint("company_id", "sku_code", name="uq_component_company_sku_code"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    brand_id: Mapped[Optional[int]] = mapped_column(ForeignKey("brands.id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    sku_code: Mapped[str] = mapped_column(String(64), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(32), nullable=False, default="each")
    cost_per_unit: Mapped[Decimal] = mapped_column(QUANTITY, nullable=False, default=Decimal("0"))
    reorder_point: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lead_time_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Sku(Base, TimestampMixin):
    """Sellable finished product, built from components through a BOM version."""

    __tablename__ = "skus"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, index=True)
    brand_id: Mapped[Optional[int]] = mapped_column(ForeignKey("brands.id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    internal_code: Mapped[str] = mapped_column(String(64), nullable=False)
    sales_channel: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    bom_versions: Mapped[list["BomVersion"]] = relationship("BomVersion", back_populates="sku")  # noqa: F821
