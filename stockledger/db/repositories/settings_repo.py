"""Company settings repository: read and update the policy JSON on Company."""

from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from stockledger.db.models.master import Company
from stockledger.errors import NotFoundError
from stockledger.models.settings import CompanySettings
from stockledger.utils.logger import get_logger

logger = get_logger("stockledger.db.settings_repo")


def parse_company_settings(raw: dict[str, Any] | None, company_id: int | None = None) -> CompanySettings:
    """Merge stored values over defaults. Values that fail validation fall back to their default."""
    if not raw:
        return CompanySettings()
    known = {k: v for k, v in raw.items() if k in CompanySettings.model_fields}
    try:
        return CompanySettings(**known)
    except ValidationError as exc:
        bad = {str(err["loc"][0]) for err in exc.errors() if err.get("loc")}
        logger.warning("settings.invalid", company_id=company_id, fields=sorted(bad))
        return CompanySettings(**{k: v for k, v in known.items() if k not in bad})


def get_company_settings(session: Session, company_id: int) -> CompanySettings:
    company = session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company", company_id)
    return parse_company_settings(company.settings, company_id)


def update_company_settings(session: Session, company_id: int, changes: dict[str, Any]) -> CompanySettings:
    """Validate and persist changes on top of the current settings."""
    company = session.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company", company_id)
    current = parse_company_settings(company.settings, company_id)
    merged = CompanySettings(**{**current.model_dump(), **changes})
    # Reassign so the JSON column is flagged dirty
    company.settings = merged.model_dump()
    session.flush()
    return merged
