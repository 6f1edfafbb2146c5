"""Re-export all ORM models so Base.metadata has all tables."""

from stockledger.db.models.alert import DefectAlert, DefectThreshold
from stockledger.db.models.bom import BomLine, BomVersion
from stockledger.db.models.forecast import ForecastConfig
from stockledger.db.models.inventory import FinishedGoodsBalance, InventoryBalance, Lot, LotBalance
from stockledger.db.models.master import Brand, Company, Component, Location, Sku
from stockledger.db.models.transaction import FinishedGoodsLine, Transaction, TransactionLine

__all__ = [
    "Company",
    "Brand",
    "Location",
    "Component",
    "Sku",
    "BomVersion",
    "BomLine",
    "InventoryBalance",
    "FinishedGoodsBalance",
    "Lot",
    "LotBalance",
    "Transaction",
    "TransactionLine",
    "FinishedGoodsLine",
    "ForecastConfig",
    "DefectThreshold",
    "DefectAlert",
]
