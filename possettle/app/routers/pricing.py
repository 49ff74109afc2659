from fastapi import APIRouter, Depends

from ..deps import get_transaction_service
from ..models import Cart
from ..money import money_str
from ..totals import Totals
from ..transactions import TransactionService

router = APIRouter(prefix="/pricing", tags=["pricing"])


def totals_out(t: Totals) -> dict:
    return {
        "subtotal": money_str(t.subtotal),
        "discount_total": money_str(t.discount.total),
        "discounts": [
            {"discount_id": d.discount_id, "name": d.name, "amount": money_str(d.amount)} for d in t.discount.lines
        ],
        "tax_total": money_str(t.tax.amount),
        "tax_percentage": str(t.tax.percentage),
        "taxes": [{"tax_id": x.tax_id, "name": x.name, "amount": money_str(x.amount)} for x in t.tax.lines],
        "service_charge": money_str(t.service_charge),
        "total": money_str(t.total),
    }


@router.post("/totals")
async def cart_totals(data: Cart, svc: TransactionService = Depends(get_transaction_service)):
    return totals_out(await svc.price(data))
