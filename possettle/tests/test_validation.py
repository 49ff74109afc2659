import pytest
from pydantic import BaseModel, ValidationError

from possettle.app.validation import DiscountKind, DiscountScope, TransactionStatus


class _StatusModel(BaseModel):
    status: TransactionStatus


class _DiscountModel(BaseModel):
    type: DiscountKind
    applicable_on: DiscountScope = "shop"


def test_transaction_status_normalizes_labels():
    assert _StatusModel(status="Partial Payment").status == "partial_payment"
    assert _StatusModel(status=" pending-payment ").status == "pending_payment"
    assert _StatusModel(status="SETTLED").status == "settled"


def test_transaction_status_rejects_unknown():
    with pytest.raises(ValidationError):
        _StatusModel(status="paid")


def test_discount_kind_and_scope_are_case_insensitive():
    m = _DiscountModel(type="Percentage", applicable_on="Category")
    assert m.type == "percentage"
    assert m.applicable_on == "category"
    with pytest.raises(ValidationError):
        _DiscountModel(type="bogo")
