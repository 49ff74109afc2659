from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional

from .errors import ValidationError
from .models import TaxType
from .money import ZERO, pct_of

MANUAL_TAX_NAME = "Manual Tax"
# Manual taxes are evaluated after every catalogue tax.
MANUAL_TAX_ORDER = 999


@dataclass(frozen=True)
class TaxLine:
    tax_id: Optional[int]
    name: str
    amount: Decimal


@dataclass(frozen=True)
class TaxSummary:
    amount: Decimal = ZERO
    # Sum of percentage rates; informational only, `amount` is authoritative.
    percentage: Decimal = ZERO
    lines: tuple[TaxLine, ...] = field(default_factory=tuple)


def aggregate_taxes(subtotal: Decimal, taxes: Iterable[TaxType]) -> TaxSummary:
    """
    Evaluate taxes in ascending calculation_order against the same base.

    Percentage taxes are not compounded on earlier taxes; fixed taxes are
    plain additions.
    """
    amount = ZERO
    percentage = ZERO
    lines = []
    for t in sorted(taxes, key=lambda t: t.calculation_order):
        if t.is_percentage:
            line_amount = pct_of(subtotal, t.value)
            percentage += t.value
        else:
            line_amount = t.value
        amount += line_amount
        lines.append(TaxLine(tax_id=t.id, name=t.name, amount=line_amount))
    return TaxSummary(amount=amount, percentage=percentage, lines=tuple(lines))


def selling_taxes(taxes: Iterable[TaxType]) -> list[TaxType]:
    return [t for t in taxes if t.is_active and t.applies_to_selling]


def manual_tax(value: Decimal, *, is_percentage: bool = True) -> TaxType:
    if value < 0:
        raise ValidationError("manual tax must be >= 0")
    return TaxType(
        id=None,
        name=MANUAL_TAX_NAME,
        value=value,
        is_percentage=is_percentage,
        calculation_order=MANUAL_TAX_ORDER,
    )
