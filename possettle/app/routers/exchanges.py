from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_current_user, get_exchange_service
from ..exchanges import ExchangeService, settlement_direction

router = APIRouter(prefix="/exchanges", tags=["exchanges"])


class ReturnedLineIn(BaseModel):
    transaction_product_id: int
    returned_quantity: Decimal


class NewLineIn(BaseModel):
    product_id: int
    quantity: Decimal
    # Ignored when the catalogue prices the item.
    unit_price: Optional[Decimal] = None


class ExchangeIn(BaseModel):
    selling_transaction_id: int
    returned_lines: List[ReturnedLineIn]
    new_lines: List[NewLineIn] = []


def exchange_out(e) -> dict:
    out = e.model_dump(mode="json")
    out["direction"] = settlement_direction(e.total_exchanged_amount)
    return out


@router.post("")
async def create_exchange(
    data: ExchangeIn,
    svc: ExchangeService = Depends(get_exchange_service),
    user_id: Optional[int] = Depends(get_current_user),
):
    exchange = await svc.create(
        data.selling_transaction_id,
        [(ln.transaction_product_id, ln.returned_quantity) for ln in data.returned_lines],
        [(ln.product_id, ln.quantity, ln.unit_price) for ln in data.new_lines],
        user_id,
    )
    return {"exchange": exchange_out(exchange)}


@router.get("")
async def list_exchanges(selling_transaction_id: Optional[int] = None, svc: ExchangeService = Depends(get_exchange_service)):
    return {"exchanges": [exchange_out(e) for e in await svc.list(selling_transaction_id)]}


@router.get("/{exchange_id}")
async def get_exchange(exchange_id: int, svc: ExchangeService = Depends(get_exchange_service)):
    return {"exchange": exchange_out(await svc.get(exchange_id))}
