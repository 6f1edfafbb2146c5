"""Company policy and forecast settings."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

ForecastExcludableType = Literal["initial", "adjustment", "receipt", "transfer"]


class CompanySettings(BaseModel):
    """Policy flags stored in Company.settings, merged over these defaults."""

    allow_negative_inventory: bool = False
    allow_expired_lot_override: bool = True
    reorder_warning_multiplier: float = Field(default=1.5, ge=1.0)
    expiry_warning_days: int = Field(default=30, ge=0)
    enable_defect_alerts: bool = True
    defect_rate_critical_threshold: float = Field(default=10.0, ge=0)


class ForecastSettings(BaseModel):
    """Consumption forecast parameters."""

    lookback_days: int = Field(default=30, ge=7, le=365)
    safety_days: int = Field(default=7, ge=0, le=90)
    excluded_transaction_types: list[ForecastExcludableType] = Field(
        default_factory=lambda: ["initial", "adjustment"]
    )

    @field_validator("excluded_transaction_types")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class ForecastSettingsUpdate(BaseModel):
    """Partial update for ForecastSettings; None leaves the stored value untouched."""

    lookback_days: int | None = Field(default=None, ge=7, le=365)
    safety_days: int | None = Field(default=None, ge=0, le=90)
    excluded_transaction_types: list[ForecastExcludableType] | None = None
