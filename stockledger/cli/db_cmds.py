"""Database commands: create tables, load the demo catalog."""

from pathlib import Path
from typing import Optional

import typer

from stockledger.config import DATABASE_URL, DEMO_SEED_PATH
from stockledger.db import init_db
from stockledger.db.seed_data import seed_demo_data

from .shared import console, logger


def init_db_cmd() -> None:
    """Create all tables in DATABASE_URL (no-op for tables that exist)."""
    log = logger.bind(command="init-db")
    init_db()
    console.print(f"[green]Database ready:[/green] {DATABASE_URL}")
    log.info("init_db.done")


def seed_demo(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help=f"Seed YAML (default {DEMO_SEED_PATH})"),
) -> None:
    """Load a demo company, catalog and opening receipts."""
    log = logger.bind(command="seed-demo")
    init_db()
    try:
        summary = seed_demo_data(path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Seed error: {e}[/red]")
        log.error("seed_demo.fail", error=str(e))
        raise typer.Exit(1) from e
    console.print(
        f"[green]Seeded company {summary['company_id']}[/green]: "
        f"{summary['locations']} locations, {summary['components']} components, "
        f"{summary['skus']} SKUs, {summary['receipts']} receipts"
    )
