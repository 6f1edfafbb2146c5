"""ORM model for per-company forecast settings."""

from typing import Optional

from sqlalchemy import JSON, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base, TimestampMixin


class ForecastConfig(Base, TimestampMixin):
    """One row per company; absent row means defaults."""

    __tablename__ = "forecast_configs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False, unique=True)
    lookback_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    safety_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    excluded_transaction_types: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
