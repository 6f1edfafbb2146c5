"""Build command: consume components for N units of a SKU."""

from typing import Optional

import typer

from stockledger.errors import BuildGateError, ExpiredLotsError, LedgerValidationError, NotFoundError
from stockledger.models.inputs import BuildRequest
from stockledger.services.build import record_build
from stockledger.services.transactions import get_default_location_id
from stockledger.utils.logger import ledger_context

from .shared import console, fmt_qty, logger, render_table


def build(
    company_id: int = typer.Option(..., "--company", "-c", help="Company id"),
    sku_id: int = typer.Option(..., "--sku", "-s", help="SKU id"),
    units: int = typer.Option(..., "--units", "-u", min=1, help="Units to build"),
    location_id: Optional[int] = typer.Option(None, "--location", "-l", help="Source location (default location if omitted)"),
    allow_insufficient: bool = typer.Option(False, "--allow-insufficient", help="Build even if components are short"),
    allow_expired: bool = typer.Option(False, "--allow-expired", help="Allow consuming expired lots"),
    defects: Optional[int] = typer.Option(None, "--defects", min=0, help="Defective units found"),
) -> None:
    """Record a build transaction."""
    log = logger.bind(units=units)
    request = BuildRequest(
        company_id=company_id,
        sku_id=sku_id,
        units_to_build=units,
        location_id=location_id,
        allow_insufficient_inventory=allow_insufficient,
        allow_expired_lots=allow_expired,
        defect_count=defects,
    )
    with ledger_context(command="build"):
        try:
            result = record_build(request, default_location_id=get_default_location_id(company_id))
        except BuildGateError as e:
            console.print(f"[red]{e.message}[/red]")
            console.print(
                render_table(
                    "Blocked by",
                    ["Item", "Detail"],
                    [(i.sku_code, _describe(i)) for i in e.items],
                )
            )
            if isinstance(e, ExpiredLotsError) and e.can_override:
                console.print("[yellow]Re-run with --allow-expired to proceed.[/yellow]")
            log.info("build.refused", code=e.code, company_id=company_id, sku_id=sku_id)
            raise typer.Exit(2) from e
        except (LedgerValidationError, NotFoundError) as e:
            console.print(f"[red]{e}[/red]")
            log.info("build.rejected", error=str(e), company_id=company_id, sku_id=sku_id)
            raise typer.Exit(1) from e

    txn = result.transaction
    console.print(
        f"[green]Build {txn.id} recorded[/green]: {txn.units_built} units, "
        f"unit cost {fmt_qty(txn.unit_bom_cost)}, total {fmt_qty(txn.total_bom_cost)}"
    )
    if result.warning:
        console.print(f"[yellow]{result.warning}[/yellow]")


def _describe(item) -> str:
    if hasattr(item, "shortage"):
        return f"need {fmt_qty(item.required)}, have {fmt_qty(item.available)}, short {fmt_qty(item.shortage)}"
    return f"lot {item.lot_number} expired {item.expiry_date}, {fmt_qty(item.quantity)} would be used"
