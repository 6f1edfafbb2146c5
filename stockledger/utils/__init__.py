"""Utility modules."""

from stockledger.utils.logger import get_logger, ledger_context
from stockledger.utils.tracing import get_tracer, init_tracing, shutdown_tracing

__all__ = [
    "get_logger",
    "ledger_context",
    "get_tracer",
    "init_tracing",
    "shutdown_tracing",
]
