"""Shared CLI helpers: console, logger, table rendering."""

from decimal import Decimal
from typing import Any, Iterable

from rich.console import Console
from rich.table import Table

from stockledger.utils.logger import get_logger

console = Console()
logger = get_logger("stockledger.cli")

STATUS_STYLES = {"ok": "green", "warning": "yellow", "critical": "red"}


def fmt_qty(value: Decimal | int | float | None) -> str:
    """Render a quantity without trailing zeros (Decimal('12.5000') -> '12.5')."""
    if value is None:
        return "-"
    d = Decimal(value)
    if d == d.to_integral_value():
        return str(d.quantize(Decimal(1)))
    return format(d.normalize(), "f")


def render_table(title: str, columns: Iterable[str], rows: Iterable[Iterable[Any]]) -> Table:
    table = Table(title=title)
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*[str(v) if v is not None else "-" for v in row])
    return table
