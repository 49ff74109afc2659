from datetime import datetime
from decimal import Decimal

import pytest

from possettle.app.discounts import (
    CartContext,
    aggregate_discounts,
    assert_selectable,
    available_discounts,
    discount_amount,
    eligible_products,
    is_currently_active,
    manual_discount,
    status_label,
)
from possettle.app.errors import ValidationError
from possettle.app.models import Discount, Product

NOW = datetime(2026, 3, 1, 10, 0, 0)


def _d(id, **kw):
    base = {"id": id, "name": f"D{id}", "type": "percentage", "value": Decimal("10")}
    base.update(kw)
    return Discount(**base)


def test_percentage_discount_is_capped():
    d = _d(1, value=Decimal("50"), max_discount_amount=Decimal("30"))
    assert discount_amount(d, Decimal("100")) == Decimal("30")
    assert discount_amount(d, Decimal("40")) == Decimal("20")


def test_fixed_discount_ignores_subtotal():
    d = _d(1, type="fixed", value=Decimal("5"))
    assert discount_amount(d, Decimal("1000")) == Decimal("5")


def test_selected_discounts_are_summed():
    summary = aggregate_discounts(
        Decimal("200"),
        [_d(1, value=Decimal("10")), _d(2, type="fixed", value=Decimal("15")), manual_discount(Decimal("2.50"))],
    )
    assert summary.total == Decimal("37.50")
    assert [ln.amount for ln in summary.lines] == [Decimal("20"), Decimal("15"), Decimal("2.50")]
    assert summary.lines[2].name == "Manual Discount"
    assert summary.lines[2].discount_id is None


def test_manual_discount_rejects_negative():
    with pytest.raises(ValidationError):
        manual_discount(Decimal("-1"))


def test_non_stackable_discount_excludes_product_already_holding_one():
    x = _d(1, is_stackable=False, applicable_on="product", product_ids=[7])
    p = Product(id=7, name="P", active_discounts=[x])
    q = Product(id=8, name="Q")
    out = eligible_products([p, q], is_stackable=False, editing_discount_id=2, now=NOW)
    assert [r.id for r in out] == [8]


def test_editing_the_same_discount_keeps_its_products():
    x = _d(1, is_stackable=False)
    p = Product(id=7, active_discounts=[x])
    out = eligible_products([p], is_stackable=False, editing_discount_id=1, now=NOW)
    assert [r.id for r in out] == [7]


def test_stackable_discount_excludes_nothing():
    x = _d(1, is_stackable=False)
    p = Product(id=7, active_discounts=[x])
    assert [r.id for r in eligible_products([p], is_stackable=True, now=NOW)] == [7]


def test_inactive_or_expired_non_stackable_does_not_block():
    expired = _d(1, is_stackable=False, end_date=datetime(2026, 1, 1))
    off = _d(2, is_stackable=False, is_active=False)
    stackable = _d(3, is_stackable=True)
    p = Product(id=7, active_discounts=[expired, off, stackable])
    assert [r.id for r in eligible_products([p], is_stackable=False, now=NOW)] == [7]


def test_is_currently_active_checks_window_and_usage():
    assert is_currently_active(_d(1), NOW)
    assert not is_currently_active(_d(1, start_date=datetime(2026, 4, 1)), NOW)
    assert not is_currently_active(_d(1, end_date=datetime(2026, 2, 1)), NOW)
    assert not is_currently_active(_d(1, usage_limit=3, times_used=3), NOW)
    assert status_label(_d(1, start_date=datetime(2026, 4, 1)), NOW) == "Scheduled"
    assert status_label(_d(1, usage_limit=1, times_used=1), NOW) == "Exhausted"


def test_available_discounts_filters_scope_and_orders_by_priority():
    rows = [
        _d(1, priority=5),
        _d(2, priority=1, applicable_on="category", category_ids=[3]),
        _d(3, priority=0, applicable_on="customer", customer_ids=[99]),
        _d(4, priority=2, min_purchase_amount=Decimal("500")),
        _d(5, priority=3, applicable_on="product", product_ids=[11]),
    ]
    cart = CartContext(subtotal=Decimal("100"), product_ids=frozenset({11}), category_ids=frozenset({3}), customer_id=1)
    assert [d.id for d in available_discounts(rows, cart, NOW)] == [2, 5, 1]


def test_assert_selectable_rejects_expired_and_minimum():
    assert_selectable([_d(1), manual_discount(Decimal("1"))], Decimal("10"), NOW)
    with pytest.raises(ValidationError):
        assert_selectable([_d(1, end_date=datetime(2026, 2, 1))], Decimal("10"), NOW)
    with pytest.raises(ValidationError):
        assert_selectable([_d(1, min_purchase_amount=Decimal("50"))], Decimal("10"), NOW)
