from decimal import Decimal

import pytest

from possettle.app.errors import ValidationError
from possettle.app.models import Discount, Modifier, ServiceCharge, TaxType, TransactionProduct
from possettle.app.totals import compute_totals


def _line(qty, price, **kw):
    return TransactionProduct(product_id=kw.pop("product_id", 1), quantity=Decimal(qty), selling_price=Decimal(price), **kw)


def test_totals_combine_discount_tax_and_service_charge():
    lines = [
        _line("2", "10.00"),
        _line("1", "30.00", modifiers=[Modifier(name="extra shot", extra_price=Decimal("5"))]),
    ]
    t = compute_totals(
        lines,
        discounts=[Discount(id=1, name="10%", type="percentage", value=Decimal("10"))],
        taxes=[TaxType(id=1, name="VAT", value=Decimal("11"))],
        service_charges=[ServiceCharge(id=1, name="Service", value=Decimal("5"))],
    )
    assert t.subtotal == Decimal("55")
    assert t.discount.total == Decimal("5.5")
    assert t.tax.amount == Decimal("6.05")
    assert t.service_charge == Decimal("2.75")
    assert t.total == Decimal("58.30")
    assert t.line_totals == (Decimal("20"), Decimal("35"))


def test_fixed_service_charge():
    t = compute_totals([_line("1", "10")], service_charges=[ServiceCharge(id=1, name="Cover", value=Decimal("2"), is_percentage=False)])
    assert t.total == Decimal("12")


def test_empty_cart_is_zero():
    t = compute_totals([])
    assert t.total == 0


def test_discount_larger_than_cart_is_rejected():
    with pytest.raises(ValidationError):
        compute_totals([_line("1", "10")], discounts=[Discount(id=1, name="big", type="fixed", value=Decimal("11"))])


def test_bad_lines_are_rejected():
    with pytest.raises(ValidationError):
        compute_totals([_line("0", "10")])
    with pytest.raises(ValidationError):
        compute_totals([_line("1", "-1")])
