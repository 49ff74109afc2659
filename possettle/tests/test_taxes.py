from decimal import Decimal

import pytest

from possettle.app.errors import ValidationError
from possettle.app.models import TaxType
from possettle.app.taxes import aggregate_taxes, manual_tax, selling_taxes


def test_taxes_are_not_compounded_and_follow_calculation_order():
    taxes = [
        TaxType(id=2, name="Levy", value=Decimal("3"), is_percentage=False, calculation_order=2),
        TaxType(id=1, name="VAT", value=Decimal("11"), calculation_order=1),
        TaxType(id=3, name="City", value=Decimal("2"), calculation_order=3),
    ]
    s = aggregate_taxes(Decimal("100"), taxes)
    assert s.amount == Decimal("16")
    assert s.percentage == Decimal("13")
    assert [ln.name for ln in s.lines] == ["VAT", "Levy", "City"]


def test_no_taxes():
    s = aggregate_taxes(Decimal("100"), [])
    assert s.amount == 0
    assert s.percentage == 0


def test_manual_tax_runs_last():
    vat = TaxType(id=1, name="VAT", value=Decimal("10"), calculation_order=5)
    s = aggregate_taxes(Decimal("50"), [manual_tax(Decimal("1"), is_percentage=False), vat])
    assert [ln.name for ln in s.lines] == ["VAT", "Manual Tax"]
    assert s.amount == Decimal("6")
    with pytest.raises(ValidationError):
        manual_tax(Decimal("-1"))


def test_selling_taxes_filters_inactive_and_purchase_only():
    rows = [
        TaxType(id=1, name="VAT", value=Decimal("10")),
        TaxType(id=2, name="Import", value=Decimal("5"), applies_to_selling=False),
        TaxType(id=3, name="Old", value=Decimal("7"), is_active=False),
    ]
    assert [t.id for t in selling_taxes(rows)] == [1]
