"""Configuration and settings."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"
CONFIG_DIR = PROJECT_ROOT / "config"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'stockledger.sqlite'}")
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"

# Logging
LOG_DIR = OUTPUT_DIR / "logs"
LOG_FILE = LOG_DIR / "app.jsonl"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "false").lower() == "true"

# Ensure log directory exists
LOG_DIR.mkdir(parents=True, exist_ok=True)

# OpenTelemetry (off unless a collector is configured)
TRACING_ENABLED = os.getenv("TRACING_ENABLED", "false").lower() == "true"
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
SERVICE_NAME = os.getenv("SERVICE_NAME", "stockledger")
DEPLOYMENT_ENVIRONMENT = os.getenv("DEPLOYMENT_ENVIRONMENT", "development")

# HTTP API
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Demo catalog loaded by `stockledger seed-demo`
DEMO_SEED_PATH = Path(os.getenv("DEMO_SEED_PATH", str(CONFIG_DIR / "demo_seed.yaml")))

# Forecast defaults (used when a company has no ForecastConfig row)
FORECAST_DEFAULT_LOOKBACK_DAYS = int(os.getenv("FORECAST_DEFAULT_LOOKBACK_DAYS", "30"))
FORECAST_DEFAULT_SAFETY_DAYS = int(os.getenv("FORECAST_DEFAULT_SAFETY_DAYS", "7"))
