from dataclasses import asdict
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_current_user, get_settlement_service, get_transaction_service
from ..models import Cart
from ..settlement import SettlementResult, SettlementService
from ..status import allowed_targets, label
from ..transactions import TransactionService

router = APIRouter(prefix="/transactions", tags=["transactions"])


class SettleIn(BaseModel):
    payment: Decimal
    credit_days: Optional[int] = None


def transaction_out(txn) -> dict:
    out = txn.model_dump(mode="json")
    out["status_label"] = label(txn.status)
    out["allowed_statuses"] = sorted(allowed_targets(txn.status))
    return out


def settlement_out(r: SettlementResult) -> dict:
    return {k: (str(v) if isinstance(v, Decimal) else v) for k, v in asdict(r).items()}


@router.post("")
async def create_transaction(
    data: Cart,
    svc: TransactionService = Depends(get_transaction_service),
    user_id: Optional[int] = Depends(get_current_user),
):
    return {"transaction": transaction_out(await svc.create_draft(data, user_id))}


@router.get("")
async def list_transactions(
    status: Optional[str] = None,
    active: bool = False,
    svc: TransactionService = Depends(get_transaction_service),
):
    rows = await svc.active_sales() if active else await svc.list(status)
    return {"transactions": [transaction_out(t) for t in rows]}


@router.get("/{transaction_id}")
async def get_transaction(transaction_id: int, svc: TransactionService = Depends(get_transaction_service)):
    return {"transaction": transaction_out(await svc.get(transaction_id))}


@router.post("/{transaction_id}/bill")
async def bill_transaction(
    transaction_id: int,
    svc: TransactionService = Depends(get_transaction_service),
    user_id: Optional[int] = Depends(get_current_user),
):
    return {"transaction": transaction_out(await svc.bill(transaction_id, user_id))}


@router.post("/{transaction_id}/hold")
async def hold_transaction(
    transaction_id: int,
    svc: TransactionService = Depends(get_transaction_service),
    user_id: Optional[int] = Depends(get_current_user),
):
    return {"transaction": transaction_out(await svc.hold(transaction_id, user_id))}


@router.post("/{transaction_id}/resume")
async def resume_transaction(
    transaction_id: int,
    svc: TransactionService = Depends(get_transaction_service),
    user_id: Optional[int] = Depends(get_current_user),
):
    return {"transaction": transaction_out(await svc.resume(transaction_id, user_id))}


@router.post("/{transaction_id}/cancel")
async def cancel_transaction(
    transaction_id: int,
    svc: TransactionService = Depends(get_transaction_service),
    user_id: Optional[int] = Depends(get_current_user),
):
    return {"transaction": transaction_out(await svc.cancel(transaction_id, user_id))}


@router.get("/{transaction_id}/settlement-preview")
async def settlement_preview(
    transaction_id: int,
    payment: Optional[Decimal] = None,
    svc: SettlementService = Depends(get_settlement_service),
):
    return {"settlement": settlement_out(await svc.preview(transaction_id, payment))}


@router.post("/{transaction_id}/settle")
async def settle_transaction(
    transaction_id: int,
    data: SettleIn,
    svc: SettlementService = Depends(get_settlement_service),
    user_id: Optional[int] = Depends(get_current_user),
):
    outcome = await svc.settle(transaction_id, data.payment, user_id, credit_days=data.credit_days)
    if outcome is None:
        return {"status": "ignored"}
    return {
        "status": outcome.result.status,
        "settlement": settlement_out(outcome.result),
        "transaction": transaction_out(outcome.transaction),
    }
