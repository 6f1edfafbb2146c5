"""Ledger services: transaction writer, lot allocation, builds, forecasting, alerts."""

from stockledger.services.build import (
    calculate_bom_unit_cost,
    calculate_max_buildable_units,
    check_expired_lots,
    check_insufficient_inventory,
    record_build,
)
from stockledger.services.forecast import (
    calculate_consumption_rate,
    calculate_consumption_rates,
    calculate_reorder_recommendation,
    calculate_runout,
    get_component_forecast,
    get_component_forecasts,
    get_forecast_config,
    upsert_forecast_config,
)
from stockledger.services.lot_allocator import allocate_fefo, allocate_lots, sort_lots_fefo
from stockledger.services.transactions import (
    get_default_location_id,
    record_adjustment,
    record_finished_goods_adjustment,
    record_finished_goods_transfer,
    record_outbound,
    record_initial,
    record_receipt,
    record_transaction,
    record_transfer,
)

__all__ = [
    "record_transaction",
    "record_receipt",
    "record_adjustment",
    "record_initial",
    "record_transfer",
    "record_finished_goods_adjustment",
    "record_finished_goods_transfer",
    "record_outbound",
    "get_default_location_id",
    "record_build",
    "check_insufficient_inventory",
    "check_expired_lots",
    "calculate_bom_unit_cost",
    "calculate_max_buildable_units",
    "sort_lots_fefo",
    "allocate_fefo",
    "allocate_lots",
    "get_forecast_config",
    "upsert_forecast_config",
    "calculate_consumption_rate",
    "calculate_consumption_rates",
    "calculate_runout",
    "calculate_reorder_recommendation",
    "get_component_forecasts",
    "get_component_forecast",
]
