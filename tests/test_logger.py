"""Tests for the ledger logging context and processors."""

import os
import sys
import unittest
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

os.environ["DATABASE_URL"] = "sqlite://"

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

import structlog

from factories import make_company, make_component, make_location
from stockledger.db import reset_db
from stockledger.models.inputs import ReceiptInput
from stockledger.services.transactions import record_transaction
from stockledger.utils import logger as ledger_logger


class TestLedgerContext(unittest.TestCase):
    def tearDown(self):
        structlog.contextvars.clear_contextvars()

    def test_binds_ids_and_restores_previous_values(self):
        structlog.contextvars.bind_contextvars(company_id=1)
        with ledger_logger.ledger_context(company_id=2, sku_id=7, location_id=None):
            bound = structlog.contextvars.get_contextvars()
            self.assertEqual(bound["company_id"], 2)
            self.assertEqual(bound["sku_id"], 7)
            self.assertNotIn("location_id", bound)
        self.assertEqual(structlog.contextvars.get_contextvars(), {"company_id": 1})

    def test_restored_when_write_fails(self):
        with self.assertRaises(RuntimeError):
            with ledger_logger.ledger_context(company_id=3):
                raise RuntimeError("boom")
        self.assertEqual(structlog.contextvars.get_contextvars(), {})

    def test_decimals_rendered_as_strings(self):
        event = ledger_logger._decimals_as_strings(
            None, "info", {"event": "x", "quantity": Decimal("2.5000"), "units": 4}
        )
        self.assertEqual(event, {"event": "x", "quantity": "2.5000", "units": 4})


class TestWriteContext(unittest.TestCase):
    def setUp(self):
        reset_db("sqlite://")
        self.company_id = make_company()
        self.main = make_location(self.company_id, is_default=True)
        self.component_id = make_component(self.company_id)

    def test_dispatch_binds_company_and_kind(self):
        seen = {}

        def capture(*args, **kwargs):
            seen.update(structlog.contextvars.get_contextvars())

        data = ReceiptInput(company_id=self.company_id, component_id=self.component_id, quantity=Decimal("1"))
        with patch("stockledger.services.transactions.apply_component_delta", side_effect=capture):
            record_transaction(data, default_location_id=self.main)
        self.assertEqual(seen, {"company_id": self.company_id, "kind": "receipt"})
        self.assertEqual(structlog.contextvars.get_contextvars(), {})


if __name__ == "__main__":
    unittest.main()
