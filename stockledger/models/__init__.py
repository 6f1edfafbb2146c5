"""Pydantic models for stockledger inputs, results and settings."""

from stockledger.models.inputs import (
    AdjustmentInput,
    BuildRequest,
    FinishedGoodsAdjustmentInput,
    FinishedGoodsTransferInput,
    InitialInput,
    LotOverride,
    ReceiptInput,
    TransactionInput,
    TransferInput,
)
from stockledger.models.outputs import (
    Allocation,
    AvailableLot,
    BalanceDrift,
    BuildResult,
    ComponentForecast,
    ComponentStatus,
    ExpiredLotItem,
    LocationBalance,
    LotAllocation,
    ShortageItem,
    TransactionResult,
)
from stockledger.models.settings import CompanySettings, ForecastSettings, ForecastSettingsUpdate

__all__ = [
    "ReceiptInput",
    "AdjustmentInput",
    "InitialInput",
    "TransferInput",
    "FinishedGoodsAdjustmentInput",
    "FinishedGoodsTransferInput",
    "TransactionInput",
    "LotOverride",
    "BuildRequest",
    "TransactionResult",
    "AvailableLot",
    "LotAllocation",
    "Allocation",
    "ShortageItem",
    "ExpiredLotItem",
    "BuildResult",
    "LocationBalance",
    "ComponentStatus",
    "BalanceDrift",
    "ComponentForecast",
    "CompanySettings",
    "ForecastSettings",
    "ForecastSettingsUpdate",
]
