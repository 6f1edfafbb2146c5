"""Tests for the HTTP API: transactions, balances, builds, forecasts and error mapping."""

import os
import sys
import unittest
from decimal import Decimal
from pathlib import Path

# In-memory SQLite on a single shared connection, so the app's sessions see the seeded rows
os.environ["DATABASE_URL"] = "sqlite://"

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from fastapi.testclient import TestClient

from factories import make_company, make_component, make_location, make_sku_with_bom
from stockledger.api import create_app
from stockledger.db import reset_db


class TestApiRoutes(unittest.TestCase):
    def setUp(self):
        reset_db("sqlite://")
        self.company_id = make_company()
        self.main = make_location(self.company_id, "Main", is_default=True)
        self.annex = make_location(self.company_id, "Annex")
        self.component_id = make_component(self.company_id, "CMP-A", cost="1.25")
        self.sku_id, self.bom_id = make_sku_with_bom(self.company_id, [(self.component_id, "2")])
        self.client = TestClient(create_app())

    def _receive(self, quantity):
        return self.client.post(
            "/transactions",
            json={
                "kind": "receipt",
                "company_id": self.company_id,
                "component_id": self.component_id,
                "quantity": str(quantity),
            },
        )

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_receipt_then_balance(self):
        resp = self._receive(40)
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(body["type"], "receipt")
        self.assertEqual(body["location_id"], self.main)

        resp = self.client.get(f"/inventory/components/{self.component_id}", params={"company_id": self.company_id})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(Decimal(data["quantity"]), Decimal("40"))
        self.assertEqual([row["location_name"] for row in data["by_location"]], ["Main"])

    def test_component_listing(self):
        self._receive(5)
        resp = self.client.get("/inventory/components", params={"company_id": self.company_id})
        self.assertEqual(resp.status_code, 200)
        rows = resp.json()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["status"], "ok")

    def test_same_location_transfer_is_400(self):
        resp = self.client.post(
            "/transactions",
            json={
                "kind": "transfer",
                "company_id": self.company_id,
                "component_id": self.component_id,
                "quantity": "1",
                "from_location_id": self.main,
                "to_location_id": self.main,
            },
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "SAME_LOCATION")

    def test_outbound_ships_built_units(self):
        outbound = {
            "kind": "outbound",
            "company_id": self.company_id,
            "sku_id": self.sku_id,
            "quantity": 3,
            "sales_channel": "Shopify",
        }
        resp = self.client.post("/transactions", json=outbound)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "INSUFFICIENT_INVENTORY")

        self._receive(10)
        resp = self.client.post(
            "/builds", json={"company_id": self.company_id, "sku_id": self.sku_id, "units_to_build": 5}
        )
        self.assertEqual(resp.status_code, 201)

        resp = self.client.post("/transactions", json=outbound)
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(body["type"], "outbound")
        self.assertEqual(body["sales_channel"], "Shopify")
        self.assertEqual(body["location_id"], self.main)

        resp = self.client.get(f"/inventory/skus/{self.sku_id}", params={"company_id": self.company_id})
        self.assertEqual(Decimal(resp.json()["quantity"]), Decimal("2"))

    def test_malformed_transaction_is_422(self):
        resp = self.client.post("/transactions", json={"kind": "receipt", "company_id": self.company_id})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["error"], "INVALID_INPUT")

    def test_unknown_component_is_404(self):
        resp = self.client.get("/inventory/components/9999", params={"company_id": self.company_id})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"], "NOT_FOUND")

    def test_build_shortage_is_409(self):
        self._receive(10)
        resp = self.client.post(
            "/builds", json={"company_id": self.company_id, "sku_id": self.sku_id, "units_to_build": 6}
        )
        self.assertEqual(resp.status_code, 409)
        body = resp.json()
        self.assertEqual(body["error"], "INSUFFICIENT_INVENTORY")
        self.assertEqual(Decimal(body["items"][0]["shortage"]), Decimal("2"))

    def test_build_and_check(self):
        self._receive(10)
        resp = self.client.post(
            "/builds/check", json={"company_id": self.company_id, "sku_id": self.sku_id, "units_to_build": 5}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["insufficient_items"], [])

        resp = self.client.post(
            "/builds", json={"company_id": self.company_id, "sku_id": self.sku_id, "units_to_build": 5}
        )
        self.assertEqual(resp.status_code, 201)
        txn = resp.json()["transaction"]
        self.assertEqual(txn["units_built"], 5)
        self.assertEqual(Decimal(txn["total_bom_cost"]), Decimal("12.5"))

        resp = self.client.get(f"/inventory/skus/{self.sku_id}", params={"company_id": self.company_id})
        self.assertEqual(Decimal(resp.json()["quantity"]), Decimal("5"))

        resp = self.client.get(f"/builds/max-buildable/{self.sku_id}")
        self.assertEqual(resp.json()["max_buildable_units"], 0)

    def test_bom_cost(self):
        resp = self.client.get(f"/builds/bom-cost/{self.bom_id}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.json()["unit_cost"]), Decimal("2.5"))

        resp = self.client.get("/builds/bom-cost/9999")
        self.assertEqual(resp.status_code, 404)

    def test_forecasts_and_config(self):
        self._receive(10)
        resp = self.client.get("/forecasts", params={"company_id": self.company_id})
        self.assertEqual(resp.status_code, 200)
        rows = resp.json()
        self.assertEqual(len(rows), 1)
        self.assertIsNone(rows[0]["days_until_runout"])

        resp = self.client.put(
            "/forecasts/config", params={"company_id": self.company_id}, json={"safety_days": 14}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["safety_days"], 14)

        resp = self.client.get("/forecasts/config", params={"company_id": self.company_id})
        self.assertEqual(resp.json()["safety_days"], 14)

    def test_forecast_config_bounds_are_422(self):
        resp = self.client.put(
            "/forecasts/config", params={"company_id": self.company_id}, json={"lookback_days": 3}
        )
        self.assertEqual(resp.status_code, 422)

    def test_reconcile_reports_clean_ledger(self):
        self._receive(3)
        resp = self.client.get("/inventory/reconcile", params={"company_id": self.company_id})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), [])


if __name__ == "__main__":
    unittest.main()
