"""Tests for OTLP tracing helpers and the spans emitted around a build."""

import os
import sys
import unittest
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

os.environ["DATABASE_URL"] = "sqlite://"

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from factories import make_company, make_component, make_location, make_sku_with_bom
from stockledger.db import reset_db
from stockledger.models.inputs import BuildRequest, InitialInput
from stockledger.services.build import record_build
from stockledger.services.transactions import record_initial
from stockledger.utils import tracing


class TestTracingHelpers(unittest.TestCase):
    def test_parse_headers(self):
        self.assertEqual(
            tracing._parse_headers("api_key=abc, x-team = ops ,junk"), {"api_key": "abc", "x-team": "ops"}
        )
        self.assertIsNone(tracing._parse_headers(""))

    def test_endpoint_gets_traces_path(self):
        with patch.object(tracing, "OTLP_ENDPOINT", "http://collector:4318/"):
            self.assertEqual(tracing._resolve_endpoint(), "http://collector:4318/v1/traces")
        with patch.object(tracing, "OTLP_ENDPOINT", "http://collector:4318/v1/traces"):
            self.assertEqual(tracing._resolve_endpoint(), "http://collector:4318/v1/traces")

    def test_init_is_noop_when_disabled(self):
        with patch.object(tracing, "TRACING_ENABLED", False), patch.object(tracing, "_build_provider") as build:
            tracing.init_tracing()
        build.assert_not_called()


class TestBuildSpans(unittest.TestCase):
    def setUp(self):
        reset_db("sqlite://")
        self.exporter = InMemorySpanExporter()
        self.provider = TracerProvider()
        self.provider.add_span_processor(SimpleSpanProcessor(self.exporter))

        self.company_id = make_company()
        self.loc = make_location(self.company_id, is_default=True)
        component_id = make_component(self.company_id)
        self.sku_id, _ = make_sku_with_bom(self.company_id, [(component_id, "1")])
        record_initial(
            InitialInput(company_id=self.company_id, component_id=component_id, quantity=Decimal("10")),
            default_location_id=self.loc,
        )

    def test_build_pipeline_spans(self):
        tracer = self.provider.get_tracer("test")
        with patch("stockledger.services.build.get_tracer", return_value=tracer):
            result = record_build(
                BuildRequest(company_id=self.company_id, sku_id=self.sku_id, units_to_build=4),
                default_location_id=self.loc,
            )
        spans = {span.name: span for span in self.exporter.get_finished_spans()}
        self.assertEqual(
            set(spans),
            {"build.record", "build.resolve_bom", "build.sufficiency_gate", "build.expiry_gate", "build.commit"},
        )
        self.assertEqual(spans["build.record"].attributes["stockledger.transaction_id"], result.transaction.id)
        self.assertEqual(spans["build.commit"].parent.span_id, spans["build.record"].context.span_id)


if __name__ == "__main__":
    unittest.main()
