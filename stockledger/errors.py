"""Domain errors raised by the ledger services and mapped to HTTP responses by the API."""

from typing import Any, Optional, Sequence


class LedgerError(Exception):
    """Base class for all stockledger errors."""


class LedgerValidationError(LedgerError):
    """Malformed input; raised before any write happens."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class NotFoundError(LedgerError):
    """Referenced entity does not exist (or is inactive / belongs to another company)."""

    def __init__(self, entity: str, entity_id: Any = None):
        self.entity = entity
        self.entity_id = entity_id
        msg = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(msg)

    def to_dict(self) -> dict[str, Any]:
        return {"error": "NOT_FOUND", "message": str(self), "entity": self.entity, "entity_id": self.entity_id}


class BuildGateError(LedgerError):
    """A build pre-check refused the request. Carries structured items the caller can act on."""

    code = "BUILD_GATE"

    def __init__(self, message: str, items: Sequence[Any]):
        super().__init__(message)
        self.message = message
        self.items = list(items)

    def _items_payload(self) -> list[Any]:
        return [i.model_dump(mode="json") if hasattr(i, "model_dump") else i for i in self.items]

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "items": self._items_payload()}


class InsufficientInventoryError(BuildGateError):
    """One or more components are short for the requested build."""

    code = "INSUFFICIENT_INVENTORY"

    def __init__(self, items: Sequence[Any]):
        super().__init__(f"Insufficient inventory for {len(items)} component(s)", items)


class ExpiredLotsError(BuildGateError):
    """FEFO allocation would consume expired lots."""

    code = "EXPIRED_LOTS"

    def __init__(self, items: Sequence[Any], can_override: bool):
        msg = (
            "Build would consume expired lots; resubmit with allow_expired_lots to proceed"
            if can_override
            else "Build would consume expired lots and company policy forbids overriding"
        )
        super().__init__(msg, items)
        self.can_override = can_override

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["can_override"] = self.can_override
        return payload
