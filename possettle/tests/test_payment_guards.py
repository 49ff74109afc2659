from decimal import Decimal

import pytest

from possettle.app.errors import ValidationError
from possettle.app.payment_guards import (
    assert_not_over_returned,
    assert_payment_in_bounds,
    assert_positive_quantity,
)


def test_assert_payment_in_bounds_allows_exact_max():
    assert_payment_in_bounds(Decimal("120.00"), Decimal("120.00"))
    assert_payment_in_bounds(Decimal("0"), Decimal("120.00"))


def test_assert_payment_in_bounds_rejects_overpayment():
    with pytest.raises(ValidationError) as exc_info:
        assert_payment_in_bounds(Decimal("120.01"), Decimal("120.00"), detail="payment exceeds bill")
    exc = exc_info.value
    assert exc.status_code == 400
    assert "payment exceeds bill" in exc.detail


def test_assert_payment_in_bounds_rejects_negative():
    with pytest.raises(ValidationError):
        assert_payment_in_bounds(Decimal("-1"), Decimal("120.00"))


def test_quantity_guards():
    assert_positive_quantity(Decimal("0.5"))
    with pytest.raises(ValidationError):
        assert_positive_quantity(Decimal("0"))
    assert_not_over_returned(Decimal("5"), Decimal("5"))
    with pytest.raises(ValidationError):
        assert_not_over_returned(Decimal("6"), Decimal("5"))
