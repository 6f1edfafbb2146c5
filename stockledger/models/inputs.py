"""Input models for ledger writes and builds.

Transaction inputs form a tagged union on ``kind`` so each variant only carries
the fields it needs (a transfer has no single location, a receipt has no reason).
"""

import datetime as dt
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class _TransactionInputBase(BaseModel):
    company_id: int
    date: dt.date = Field(default_factory=dt.date.today)
    notes: Optional[str] = None


class ReceiptInput(_TransactionInputBase):
    """Stock arriving from a supplier, optionally into a named lot."""

    kind: Literal["receipt"] = "receipt"
    component_id: int
    quantity: Decimal = Field(gt=0)
    location_id: Optional[int] = None
    cost_per_unit: Optional[Decimal] = Field(default=None, ge=0)
    update_component_cost: bool = False
    supplier: Optional[str] = None
    lot_number: Optional[str] = None
    expiry_date: Optional[dt.date] = None


class AdjustmentInput(_TransactionInputBase):
    """Signed correction (count variance, damage, loss)."""

    kind: Literal["adjustment"] = "adjustment"
    component_id: int
    quantity: Decimal
    reason: str = Field(min_length=1)
    location_id: Optional[int] = None


class InitialInput(_TransactionInputBase):
    """Opening balance, applied as a signed delta on top of whatever is already there."""

    kind: Literal["initial"] = "initial"
    component_id: int
    quantity: Decimal
    location_id: Optional[int] = None
    cost_per_unit: Optional[Decimal] = Field(default=None, ge=0)
    update_component_cost: bool = False


class TransferInput(_TransactionInputBase):
    kind: Literal["transfer"] = "transfer"
    component_id: int
    quantity: Decimal = Field(gt=0)
    from_location_id: int
    to_location_id: int


class FinishedGoodsAdjustmentInput(_TransactionInputBase):
    kind: Literal["finished_goods_adjustment"] = "finished_goods_adjustment"
    sku_id: int
    quantity: Decimal
    reason: str = Field(min_length=1)
    location_id: Optional[int] = None


class FinishedGoodsTransferInput(_TransactionInputBase):
    kind: Literal["finished_goods_transfer"] = "finished_goods_transfer"
    sku_id: int
    quantity: Decimal = Field(gt=0)
    from_location_id: int
    to_location_id: int


class OutboundInput(_TransactionInputBase):
    """Finished goods shipped out through a sales channel."""

    kind: Literal["outbound"] = "outbound"
    sku_id: int
    quantity: int = Field(gt=0)
    sales_channel: str = Field(min_length=1)
    location_id: Optional[int] = None


TransactionInput = Annotated[
    Union[
        ReceiptInput,
        AdjustmentInput,
        InitialInput,
        TransferInput,
        FinishedGoodsAdjustmentInput,
        FinishedGoodsTransferInput,
        OutboundInput,
    ],
    Field(discriminator="kind"),
]


class LotOverride(BaseModel):
    """Caller-chosen lot for one component of a build."""

    component_id: int
    lot_id: int
    quantity: Decimal = Field(gt=0)


class BuildRequest(BaseModel):
    """Build N units of a SKU from its BOM."""

    company_id: int
    sku_id: int
    bom_version_id: Optional[int] = None
    units_to_build: int = Field(gt=0)
    date: dt.date = Field(default_factory=dt.date.today)
    location_id: Optional[int] = None
    output_to_finished_goods: bool = True
    output_location_id: Optional[int] = None
    output_quantity: Optional[int] = Field(default=None, gt=0)
    lot_overrides: list[LotOverride] = Field(default_factory=list)
    allow_insufficient_inventory: bool = False
    allow_expired_lots: bool = False
    notes: Optional[str] = None
    sales_channel: Optional[str] = None
    defect_count: Optional[int] = Field(default=None, ge=0)
    defect_notes: Optional[str] = None
    affected_units: Optional[int] = Field(default=None, ge=0)
