from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_current_user, get_refund_service
from ..refunds import RefundService

router = APIRouter(prefix="/refunds", tags=["refunds"])


class RefundLineIn(BaseModel):
    transaction_product_id: int
    returned_quantity: Decimal


class RefundIn(BaseModel):
    selling_transaction_id: int
    lines: List[RefundLineIn]
    is_cash: bool = True


@router.post("")
async def create_refund(
    data: RefundIn,
    svc: RefundService = Depends(get_refund_service),
    user_id: Optional[int] = Depends(get_current_user),
):
    refund = await svc.create(
        data.selling_transaction_id,
        [(ln.transaction_product_id, ln.returned_quantity) for ln in data.lines],
        user_id,
        is_cash=data.is_cash,
    )
    return {"refund": refund.model_dump(mode="json")}


@router.get("")
async def list_refunds(selling_transaction_id: Optional[int] = None, svc: RefundService = Depends(get_refund_service)):
    return {"refunds": [r.model_dump(mode="json") for r in await svc.list(selling_transaction_id)]}


@router.get("/{refund_id}")
async def get_refund(refund_id: int, svc: RefundService = Depends(get_refund_service)):
    return {"refund": (await svc.get(refund_id)).model_dump(mode="json")}
