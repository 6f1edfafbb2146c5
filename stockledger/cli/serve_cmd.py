"""Serve command: run the HTTP API with uvicorn."""

import sys

import typer
import uvicorn

from stockledger.api import create_app
from stockledger.config import API_HOST, API_PORT
from stockledger.db import init_db

from .shared import console, logger


def serve(
    port: int = typer.Option(API_PORT, "--port", "-p", help="Port for the API server"),
    host: str = typer.Option(API_HOST, "--host", "-h", help="Bind host"),
) -> None:
    """Start the HTTP API."""
    init_db()
    log = logger.bind(command="serve", port=port)
    log.info("serve.start")
    console.print(f"[green]Starting API on http://{host}:{port}[/green]")
    console.print("[dim]Endpoints: /inventory, /transactions, /builds, /forecasts, GET /health[/dim]")
    try:
        uvicorn.run(create_app(), host=host, port=port, log_level="info", timeout_graceful_shutdown=15)
    except KeyboardInterrupt:
        console.print("\n[dim]Shutting down...[/dim]")
        sys.exit(0)
