"""Balances command: on-hand and reorder status per component."""

from typing import Optional

import typer

from stockledger.db import get_session
from stockledger.db.repositories.balance_repo import list_components_with_reorder_status
from stockledger.errors import NotFoundError

from .shared import STATUS_STYLES, console, fmt_qty, logger, render_table


def balances(
    company_id: int = typer.Option(..., "--company", "-c", help="Company id"),
    location_id: Optional[int] = typer.Option(None, "--location", "-l", help="Restrict to one location"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="ok | warning | critical"),
) -> None:
    """Show component balances with reorder status."""
    log = logger.bind(command="balances", company_id=company_id)
    if status is not None and status not in STATUS_STYLES:
        console.print(f"[red]Unknown status {status!r}[/red]")
        raise typer.Exit(1)
    try:
        with get_session() as session:
            rows = list_components_with_reorder_status(session, company_id, status=status, location_id=location_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    table = render_table(
        "Component balances",
        ["SKU code", "Name", "On hand", "Reorder point", "Status"],
        [
            (
                r.sku_code,
                r.name,
                fmt_qty(r.quantity_on_hand),
                r.reorder_point,
                f"[{STATUS_STYLES[r.status]}]{r.status}[/{STATUS_STYLES[r.status]}]",
            )
            for r in rows
        ],
    )
    console.print(table)
    log.info("balances.listed", count=len(rows))
