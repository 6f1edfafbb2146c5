"""Transaction API routes: post receipts, adjustments, opening balances and transfers."""

from typing import Any

from fastapi import APIRouter, Body
from pydantic import TypeAdapter

from stockledger.models.inputs import TransactionInput
from stockledger.models.outputs import TransactionResult
from stockledger.services.transactions import get_default_location_id, record_transaction

router = APIRouter(prefix="/transactions", tags=["transactions"])

_transaction_input = TypeAdapter(TransactionInput)


@router.post("", status_code=201)
async def create_transaction(body: dict[str, Any] = Body(...)) -> TransactionResult:
    """Record one transaction. The body's "kind" selects receipt, adjustment, initial, transfer,
    finished_goods_adjustment or finished_goods_transfer. Missing locations fall back to the
    company's default location.
    """
    data = _transaction_input.validate_python(body)
    return record_transaction(data, default_location_id=get_default_location_id(data.company_id))
