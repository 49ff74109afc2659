"""
Cart totals as a single pure function.

Call it again after any change to lines, discounts, taxes or service charges;
nothing recomputes implicitly.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Iterable, Sequence

from .discounts import DiscountSummary, aggregate_discounts
from .errors import ValidationError
from .models import Discount, ServiceCharge, TaxType, TransactionProduct
from .money import ZERO, pct_of, q_money
from .taxes import TaxSummary, aggregate_taxes


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: DiscountSummary
    tax: TaxSummary
    service_charge: Decimal
    total: Decimal
    line_totals: tuple[Decimal, ...] = field(default_factory=tuple)


def service_charge_amount(subtotal: Decimal, charges: Iterable[ServiceCharge]) -> Decimal:
    amount = ZERO
    for c in charges:
        amount += pct_of(subtotal, c.value) if c.is_percentage else c.value
    return amount


def _rounded_discounts(s: DiscountSummary) -> DiscountSummary:
    lines = tuple(replace(ln, amount=q_money(ln.amount)) for ln in s.lines)
    return DiscountSummary(total=sum((ln.amount for ln in lines), ZERO), lines=lines)


def _rounded_taxes(s: TaxSummary) -> TaxSummary:
    lines = tuple(replace(ln, amount=q_money(ln.amount)) for ln in s.lines)
    return replace(s, amount=sum((ln.amount for ln in lines), ZERO), lines=lines)


def compute_totals(
    lines: Sequence[TransactionProduct],
    discounts: Iterable[Discount] = (),
    taxes: Iterable[TaxType] = (),
    service_charges: Iterable[ServiceCharge] = (),
) -> Totals:
    for ln in lines:
        if ln.quantity <= 0:
            raise ValidationError(f"quantity must be > 0 (product {ln.product_id})")
        if ln.selling_price < 0:
            raise ValidationError(f"selling price must be >= 0 (product {ln.product_id})")

    # Stored amounts are rounded to the money quantum.
    line_totals = tuple(q_money(ln.line_total) for ln in lines)
    subtotal = sum(line_totals, ZERO)
    discount = _rounded_discounts(aggregate_discounts(subtotal, discounts))
    # Tax is assessed on the pre-discount subtotal.
    tax = _rounded_taxes(aggregate_taxes(subtotal, taxes))
    service = q_money(service_charge_amount(subtotal, service_charges))
    total = subtotal + tax.amount + service - discount.total
    if total < 0:
        raise ValidationError(f"discounts exceed the cart total ({total})")
    return Totals(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        service_charge=service,
        total=total,
        line_totals=line_totals,
    )
