"""Inventory ledger and build-transaction engine."""

__version__ = "0.1.0"
