from decimal import Decimal

from .errors import ValidationError

ZERO = Decimal("0")


def assert_payment_in_bounds(
    payment: Decimal,
    max_allowed: Decimal,
    detail: str = "payment exceeds the amount owed",
):
    if payment < ZERO:
        raise ValidationError("payment must be >= 0")
    if payment > max_allowed:
        raise ValidationError(f"{detail} (max {max_allowed})")


def assert_positive_quantity(qty: Decimal, detail: str = "quantity must be > 0"):
    if qty <= ZERO:
        raise ValidationError(detail)


def assert_not_over_returned(returned: Decimal, sold: Decimal, detail: str = "returned quantity exceeds sold quantity"):
    if returned > sold:
        raise ValidationError(f"{detail} ({returned} > {sold})")
