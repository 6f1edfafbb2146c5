"""CLI commands: one module per command group."""

from typer import Typer

from stockledger.cli import balances_cmd, build_cmd, db_cmds, forecast_cmd, reconcile_cmd, serve_cmd
from stockledger.utils.tracing import init_tracing

init_tracing()

app = Typer(help="Inventory ledger and build-transaction engine")


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command(name="init-db")(db_cmds.init_db_cmd)
    app.command(name="seed-demo")(db_cmds.seed_demo)
    app.command()(balances_cmd.balances)
    app.command()(forecast_cmd.forecast)
    app.command()(build_cmd.build)
    app.command()(reconcile_cmd.reconcile)
    app.command()(serve_cmd.serve)


register_commands()
