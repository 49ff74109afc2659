from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..deps import Stores, get_stores
from ..discounts import CartContext, available_discounts, eligible_products, status_label

router = APIRouter(prefix="/discounts", tags=["discounts"])


class EligibleProductsIn(BaseModel):
    is_stackable: bool = False
    # Set when editing an existing definition so it does not exclude itself.
    editing_discount_id: Optional[int] = None


@router.get("/available")
async def list_available_discounts(
    subtotal: Decimal = Decimal("0"),
    product_ids: List[int] = Query([]),
    category_ids: List[int] = Query([]),
    customer_id: Optional[int] = None,
    stores: Stores = Depends(get_stores),
):
    now = stores.clock.now()
    cart = CartContext(
        subtotal=subtotal,
        product_ids=frozenset(product_ids),
        category_ids=frozenset(category_ids),
        customer_id=customer_id,
    )
    rows = available_discounts(await stores.discounts.get_all(is_active=True), cart, now)
    return {"discounts": [{**d.model_dump(mode="json"), "status_label": status_label(d, now)} for d in rows]}


@router.post("/eligible-products")
async def list_eligible_products(data: EligibleProductsIn, stores: Stores = Depends(get_stores)):
    rows = eligible_products(
        await stores.products.get_all(),
        is_stackable=data.is_stackable,
        editing_discount_id=data.editing_discount_id,
        now=stores.clock.now(),
    )
    return {"products": [{"id": p.id, "name": p.name, "category_id": p.category_id} for p in rows]}
