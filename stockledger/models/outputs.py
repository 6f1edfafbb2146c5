"""Result models returned by services and the HTTP API."""

import datetime as dt
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ReorderStatus = Literal["ok", "warning", "critical"]
ExpiryStatus = Literal["ok", "expiring_soon", "expired"]


class TransactionLineResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    component_id: int
    location_id: int
    quantity_change: Decimal
    cost_per_unit: Optional[Decimal] = None
    lot_id: Optional[int] = None


class FinishedGoodsLineResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku_id: int
    location_id: int
    quantity_change: Decimal
    cost_per_unit: Optional[Decimal] = None


class TransactionResult(BaseModel):
    """A committed transaction with its lines."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    type: str
    status: str
    date: dt.date
    location_id: Optional[int] = None
    from_location_id: Optional[int] = None
    to_location_id: Optional[int] = None
    sku_id: Optional[int] = None
    bom_version_id: Optional[int] = None
    units_built: Optional[int] = None
    unit_bom_cost: Optional[Decimal] = None
    total_bom_cost: Optional[Decimal] = None
    sales_channel: Optional[str] = None
    defect_count: Optional[int] = None
    defect_notes: Optional[str] = None
    affected_units: Optional[int] = None
    supplier: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    lines: list[TransactionLineResult] = Field(default_factory=list)
    finished_goods_lines: list[FinishedGoodsLineResult] = Field(default_factory=list)


class AvailableLot(BaseModel):
    """Lot with positive remaining balance, as seen by the allocator."""

    lot_id: int
    lot_number: str
    available_quantity: Decimal
    expiry_date: Optional[dt.date] = None
    is_expired: bool = False
    created_at: Optional[dt.datetime] = None


class LotAllocation(BaseModel):
    lot_id: int
    lot_number: str
    quantity: Decimal
    expiry_date: Optional[dt.date] = None
    is_expired: bool = False


class Allocation(BaseModel):
    """Allocation plan for one component. unallocated > 0 means lots ran out."""

    component_id: int
    required: Decimal
    lots: list[LotAllocation] = Field(default_factory=list)
    unallocated: Decimal = Decimal("0")

    @property
    def allocated(self) -> Decimal:
        return sum((a.quantity for a in self.lots), Decimal("0"))


class ShortageItem(BaseModel):
    component_id: int
    component_name: str
    sku_code: str
    required: Decimal
    available: Decimal
    shortage: Decimal


class ExpiredLotItem(BaseModel):
    component_id: int
    component_name: str
    sku_code: str
    lot_id: int
    lot_number: str
    expiry_date: dt.date
    quantity: Decimal


class BuildResult(BaseModel):
    transaction: TransactionResult
    insufficient_items: list[ShortageItem] = Field(default_factory=list)
    warning: Optional[str] = None


class LocationBalance(BaseModel):
    location_id: int
    location_name: str
    location_type: str
    quantity: Decimal


class ComponentStatus(BaseModel):
    """Component with on-hand quantity and derived reorder status."""

    component_id: int
    name: str
    sku_code: str
    quantity_on_hand: Decimal
    reorder_point: int
    status: ReorderStatus


class BalanceDrift(BaseModel):
    """Materialized balance that disagrees with the sum of its ledger lines."""

    kind: Literal["component", "sku"]
    item_id: int
    location_id: int
    stored: Decimal
    expected: Decimal


class AffectedSku(BaseModel):
    sku_id: int
    sku_name: str
    internal_code: str
    quantity_used: Decimal
    transaction_count: int


class ExpiringLot(BaseModel):
    lot_id: int
    lot_number: str
    component_id: int
    component_name: str
    expiry_date: dt.date
    quantity: Decimal
    days_until_expiry: int
    status: ExpiryStatus


class DefectAlertResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    threshold_id: int
    transaction_id: int
    sku_id: int
    defect_rate: Decimal
    threshold_value: Decimal
    severity: str


class ForecastAssumptions(BaseModel):
    lookback_days: int
    safety_days: int
    excluded_transaction_types: list[str]


class ComponentForecast(BaseModel):
    component_id: int
    component_name: str
    sku_code: str
    quantity_on_hand: Decimal
    average_daily_consumption: Decimal
    days_until_runout: Optional[int] = None
    runout_date: Optional[dt.date] = None
    recommended_reorder_qty: int = 0
    recommended_reorder_date: Optional[dt.date] = None
    lead_time_days: int
    assumptions: ForecastAssumptions
