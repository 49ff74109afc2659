"""
Discount aggregation and applicability.

Per sale the cashier picks discounts explicitly; every selected discount is
summed, there is no implicit best-discount search. The stackable filter
serves the back-office flow that assigns a discount definition to products.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .errors import ValidationError
from .models import Discount, Product
from .money import ZERO, pct_of

MANUAL_DISCOUNT_NAME = "Manual Discount"


@dataclass(frozen=True)
class DiscountLine:
    discount_id: Optional[int]
    name: str
    amount: Decimal


@dataclass(frozen=True)
class DiscountSummary:
    total: Decimal = ZERO
    lines: tuple[DiscountLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CartContext:
    subtotal: Decimal
    product_ids: frozenset[int] = frozenset()
    category_ids: frozenset[int] = frozenset()
    customer_id: Optional[int] = None


def discount_amount(discount: Discount, subtotal: Decimal) -> Decimal:
    if discount.type == "fixed":
        return discount.value
    amount = pct_of(subtotal, discount.value)
    if discount.max_discount_amount is not None and amount > discount.max_discount_amount:
        amount = discount.max_discount_amount
    return amount


def aggregate_discounts(subtotal: Decimal, discounts: Iterable[Discount]) -> DiscountSummary:
    lines = []
    total = ZERO
    for d in discounts:
        amount = discount_amount(d, subtotal)
        total += amount
        lines.append(DiscountLine(discount_id=d.id, name=d.name, amount=amount))
    return DiscountSummary(total=total, lines=tuple(lines))


def manual_discount(amount: Decimal, note: Optional[str] = None) -> Discount:
    if amount < 0:
        raise ValidationError("manual discount must be >= 0")
    return Discount(id=None, name=(note or "").strip() or MANUAL_DISCOUNT_NAME, type="fixed", value=amount)


def usage_exhausted(discount: Discount) -> bool:
    return discount.usage_limit is not None and discount.times_used >= discount.usage_limit


def is_currently_active(discount: Discount, now: datetime) -> bool:
    if not discount.is_active or usage_exhausted(discount):
        return False
    if discount.start_date is not None and now < discount.start_date:
        return False
    if discount.end_date is not None and now > discount.end_date:
        return False
    return True


def status_label(discount: Discount, now: datetime) -> str:
    if not discount.is_active:
        return "Inactive"
    if discount.start_date is not None and now < discount.start_date:
        return "Scheduled"
    if discount.end_date is not None and now > discount.end_date:
        return "Expired"
    if usage_exhausted(discount):
        return "Exhausted"
    return "Active"


def scope_matches(discount: Discount, cart: CartContext) -> bool:
    scope = discount.applicable_on
    if scope == "shop":
        return True
    if scope == "product":
        return bool(cart.product_ids & set(discount.product_ids))
    if scope == "category":
        return bool(cart.category_ids & set(discount.category_ids))
    if scope == "customer":
        return cart.customer_id is not None and cart.customer_id in discount.customer_ids
    return False


def meets_minimum(discount: Discount, subtotal: Decimal) -> bool:
    return discount.min_purchase_amount is None or subtotal >= discount.min_purchase_amount


def available_discounts(discounts: Iterable[Discount], cart: CartContext, now: datetime) -> list[Discount]:
    """Discounts the till may offer for this cart, lowest priority value first."""
    out = [
        d
        for d in discounts
        if is_currently_active(d, now) and scope_matches(d, cart) and meets_minimum(d, cart.subtotal)
    ]
    return sorted(out, key=lambda d: (d.priority, d.id or 0))


def assert_selectable(discounts: Sequence[Discount], subtotal: Decimal, now: datetime) -> None:
    for d in discounts:
        # Manual discounts have no catalogue entry to check.
        if d.id is None:
            continue
        if not is_currently_active(d, now):
            raise ValidationError(f"discount {d.name} is not currently active")
        if not meets_minimum(d, subtotal):
            raise ValidationError(f"discount {d.name} requires a minimum purchase of {d.min_purchase_amount}")


def _blocks_non_stackable(existing: Discount, editing_id: Optional[int], now: datetime) -> bool:
    if editing_id is not None and existing.id == editing_id:
        return False
    return is_currently_active(existing, now) and not existing.is_stackable


def eligible_products(
    products: Iterable[Product],
    *,
    is_stackable: bool,
    editing_discount_id: Optional[int] = None,
    now: datetime,
) -> list[Product]:
    """
    Products a discount definition may be attached to.

    Stackable definitions can go anywhere. A non-stackable definition skips
    products already holding another active non-stackable discount, since a
    product carries at most one of those at a time.
    """
    products = list(products)
    if is_stackable:
        return products
    return [
        p
        for p in products
        if not any(_blocks_non_stackable(d, editing_discount_id, now) for d in p.active_discounts)
    ]
