"""Reconcile command: compare materialized balances against the ledger and optionally fix them."""

import typer

from stockledger.db import get_session
from stockledger.db.repositories.balance_repo import find_balance_drift, rebuild_balances

from .shared import console, fmt_qty, logger, render_table


def reconcile(
    company_id: int = typer.Option(..., "--company", "-c", help="Company id"),
    fix: bool = typer.Option(False, "--fix", help="Rewrite drifted balances from the ledger"),
) -> None:
    """Report (and with --fix, correct) balances that disagree with their transaction lines."""
    log = logger.bind(command="reconcile", company_id=company_id, fix=fix)
    with get_session() as session:
        drift = rebuild_balances(session, company_id) if fix else find_balance_drift(session, company_id)
    if not drift:
        console.print("[green]All balances match the ledger.[/green]")
        log.info("reconcile.clean")
        return
    console.print(
        render_table(
            "Balance drift" + (" (fixed)" if fix else ""),
            ["Kind", "Item", "Location", "Stored", "Ledger"],
            [(d.kind, d.item_id, d.location_id, fmt_qty(d.stored), fmt_qty(d.expected)) for d in drift],
        )
    )
    log.warning("reconcile.drift", count=len(drift))
    if not fix:
        raise typer.Exit(1)
