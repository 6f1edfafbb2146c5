"""DB repositories: sync functions over an open Session."""

from stockledger.db.repositories.balance_repo import (
    apply_component_delta,
    apply_sku_delta,
    calculate_reorder_status,
    find_balance_drift,
    get_component_quantities,
    get_component_quantities_by_location,
    get_component_quantity,
    get_sku_quantities,
    get_sku_quantities_by_location,
    get_sku_quantity,
    list_components_with_reorder_status,
    rebuild_balances,
)
from stockledger.db.repositories.settings_repo import get_company_settings

__all__ = [
    "apply_component_delta",
    "apply_sku_delta",
    "get_component_quantity",
    "get_component_quantities",
    "get_component_quantities_by_location",
    "get_sku_quantity",
    "get_sku_quantities",
    "get_sku_quantities_by_location",
    "calculate_reorder_status",
    "list_components_with_reorder_status",
    "find_balance_drift",
    "rebuild_balances",
    "get_company_settings",
]
