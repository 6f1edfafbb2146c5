"""Load a demo catalog (company, locations, components, SKUs with BOMs, opening receipts) from YAML."""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import yaml

from stockledger.config import DEMO_SEED_PATH
from stockledger.db import get_session
from stockledger.db.models.alert import DefectThreshold
from stockledger.db.models.bom import BomLine, BomVersion
from stockledger.db.models.master import LOCATION_TYPES, LOCATION_WAREHOUSE, Brand, Company, Component, Location, Sku
from stockledger.utils.logger import get_logger

logger = get_logger("stockledger.db.seed_data")


def _parse_date(val: Any) -> date | None:
    if val is None or isinstance(val, date):
        return val
    s = str(val).strip()
    return date.fromisoformat(s[:10]) if s else None


def load_seed_file(path: Optional[Path] = None) -> dict[str, Any]:
    path = Path(path or DEMO_SEED_PATH)
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}. Set DEMO_SEED_PATH or create config/demo_seed.yaml.")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in seed file {path}: {e}") from e
    if not isinstance(data, dict) or "company" not in data:
        raise ValueError(f"Seed file must be a YAML object with a 'company' key: {path}")
    return data


def seed_demo_data(path: Optional[Path] = None) -> dict[str, Any]:
    """Insert master data in one unit, then post opening receipts through the transaction writer.

    Returns a summary with the new company id and row counts.
    """
    from stockledger.models.inputs import ReceiptInput
    from stockledger.services.forecast import upsert_forecast_config
    from stockledger.services.transactions import record_receipt

    data = load_seed_file(path)
    with get_session() as session:
        company_cfg = data["company"]
        company = Company(name=company_cfg["name"], settings=company_cfg.get("settings") or {})
        session.add(company)
        session.flush()

        brand_id = None
        for b in data.get("brands") or []:
            brand = Brand(company_id=company.id, name=b["name"])
            session.add(brand)
            session.flush()
            brand_id = brand_id or brand.id

        location_ids: dict[str, int] = {}
        for loc in data.get("locations") or []:
            loc_type = loc.get("type", LOCATION_WAREHOUSE)
            if loc_type not in LOCATION_TYPES:
                raise ValueError(f"Unknown location type {loc_type!r} for location {loc['name']!r}")
            row = Location(
                company_id=company.id,
                name=loc["name"],
                type=loc_type,
                is_default=bool(loc.get("is_default", False)),
            )
            session.add(row)
            session.flush()
            location_ids[row.name] = row.id

        component_ids: dict[str, int] = {}
        for c in data.get("components") or []:
            row = Component(
                company_id=company.id,
                brand_id=brand_id,
                name=c["name"],
                sku_code=c["sku_code"],
                unit_of_measure=c.get("unit_of_measure", "each"),
                cost_per_unit=Decimal(str(c.get("cost_per_unit", 0))),
                reorder_point=int(c.get("reorder_point", 0)),
                lead_time_days=int(c.get("lead_time_days", 0)),
            )
            session.add(row)
            session.flush()
            component_ids[row.sku_code] = row.id

        sku_count = 0
        for s in data.get("skus") or []:
            sku = Sku(
                company_id=company.id,
                brand_id=brand_id,
                name=s["name"],
                internal_code=s["internal_code"],
                sales_channel=s.get("sales_channel"),
            )
            session.add(sku)
            session.flush()
            sku_count += 1
            bom_cfg = s.get("bom")
            if bom_cfg:
                bom = BomVersion(sku_id=sku.id, version_name=bom_cfg.get("version_name", "v1"), is_active=True)
                session.add(bom)
                session.flush()
                for line in bom_cfg.get("lines") or []:
                    session.add(
                        BomLine(
                            bom_version_id=bom.id,
                            component_id=component_ids[line["component"]],
                            quantity_per_unit=Decimal(str(line["quantity_per_unit"])),
                        )
                    )

        for t in data.get("defect_thresholds") or []:
            session.add(
                DefectThreshold(company_id=company.id, defect_rate_limit=Decimal(str(t["defect_rate_limit"])))
            )
        company_id = company.id

    default_location_id = next(
        (location_ids[loc["name"]] for loc in data.get("locations") or [] if loc.get("is_default")), None
    )
    receipts = data.get("receipts") or []
    for r in receipts:
        record_receipt(
            ReceiptInput(
                company_id=company_id,
                component_id=component_ids[r["component"]],
                quantity=Decimal(str(r["quantity"])),
                location_id=location_ids.get(r.get("location", "")),
                cost_per_unit=Decimal(str(r["cost_per_unit"])) if r.get("cost_per_unit") is not None else None,
                supplier=r.get("supplier"),
                lot_number=r.get("lot_number"),
                expiry_date=_parse_date(r.get("expiry_date")),
            ),
            default_location_id=default_location_id,
        )

    if data.get("forecast"):
        upsert_forecast_config(company_id, data["forecast"])

    summary = {
        "company_id": company_id,
        "locations": len(location_ids),
        "components": len(component_ids),
        "skus": sku_count,
        "receipts": len(receipts),
    }
    logger.info("seed.done", **summary)
    return summary
