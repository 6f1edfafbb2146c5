"""Forecast command: runout and reorder recommendations."""

from typing import Optional

import typer

from stockledger.models.settings import ForecastSettingsUpdate
from stockledger.services.forecast import get_component_forecasts

from .shared import console, fmt_qty, logger, render_table


def forecast(
    company_id: int = typer.Option(..., "--company", "-c", help="Company id"),
    location_id: Optional[int] = typer.Option(None, "--location", "-l", help="Location-aware forecast"),
    lookback_days: Optional[int] = typer.Option(None, "--lookback", min=7, max=365, help="Lookback window (days)"),
    safety_days: Optional[int] = typer.Option(None, "--safety", min=0, max=90, help="Safety buffer (days)"),
) -> None:
    """Forecast consumption, runout date and reorder quantity for every active component."""
    log = logger.bind(command="forecast", company_id=company_id)
    override = ForecastSettingsUpdate(lookback_days=lookback_days, safety_days=safety_days)
    forecasts = get_component_forecasts(company_id, config_override=override, location_id=location_id)
    if not forecasts:
        console.print("[yellow]No active components.[/yellow]")
        return
    table = render_table(
        "Component forecast",
        ["SKU code", "On hand", "Daily use", "Days left", "Runout", "Reorder qty", "Reorder by"],
        [
            (
                f.sku_code,
                fmt_qty(f.quantity_on_hand),
                f"{f.average_daily_consumption:.2f}",
                f.days_until_runout,
                f.runout_date,
                f.recommended_reorder_qty,
                f.recommended_reorder_date,
            )
            for f in forecasts
        ],
    )
    console.print(table)
    a = forecasts[0].assumptions
    console.print(
        f"[dim]lookback {a.lookback_days}d, safety {a.safety_days}d, "
        f"excluding {', '.join(a.excluded_transaction_types) or 'nothing'}[/dim]"
    )
    log.info("forecast.listed", count=len(forecasts))
