from decimal import Decimal

import pytest

from possettle.app.errors import CreditPolicyViolation, ValidationError
from possettle.app.settlement import compute_settlement


def test_full_payment_settles():
    r = compute_settlement(Decimal("100"), Decimal("0"), Decimal("0"), Decimal("100"), credit_allowed=False)
    assert r.status == "settled"
    assert r.credit_remaining == 0
    assert r.new_customer_balance == 0
    assert r.bill_total == Decimal("100")


def test_partial_payment_with_pending_dues():
    r = compute_settlement(Decimal("100"), Decimal("0"), Decimal("20"), Decimal("60"), credit_allowed=True)
    assert r.bill_total == Decimal("120")
    assert r.total_paid_now == Decimal("60")
    assert r.credit_remaining == Decimal("60")
    assert r.status == "partial_payment"
    assert r.new_customer_balance == Decimal("60")


def test_partial_payment_without_credit_is_rejected():
    with pytest.raises(CreditPolicyViolation) as exc_info:
        compute_settlement(Decimal("100"), Decimal("0"), Decimal("20"), Decimal("60"), credit_allowed=False)
    assert exc_info.value.status_code == 400


def test_zero_payment_is_pending():
    r = compute_settlement(Decimal("100"), Decimal("0"), Decimal("0"), Decimal("0"), credit_allowed=True)
    assert r.status == "pending_payment"
    assert r.credit_remaining == Decimal("100")
    with pytest.raises(CreditPolicyViolation):
        compute_settlement(Decimal("100"), Decimal("0"), Decimal("0"), Decimal("0"), credit_allowed=False)


@pytest.mark.parametrize("payment", ["-0.01", "120.01", "1000"])
def test_out_of_range_payment_is_rejected(payment):
    with pytest.raises(ValidationError):
        compute_settlement(Decimal("100"), Decimal("0"), Decimal("20"), Decimal(payment), credit_allowed=True)


def test_every_admissible_payment_balances_the_bill():
    total = Decimal("87.35")
    balance = Decimal("12.65")
    step = Decimal("0.05")
    payment = Decimal("0")
    seen = set()
    while payment <= total + balance:
        r = compute_settlement(total, Decimal("0"), balance, payment, credit_allowed=True)
        assert r.status in {"settled", "partial_payment", "pending_payment"}
        assert r.total_paid_now + r.credit_remaining == r.bill_total
        seen.add(r.status)
        payment += step
    assert seen == {"settled", "partial_payment", "pending_payment"}


def test_already_paid_reduces_max_payment():
    r = compute_settlement(Decimal("100"), Decimal("30"), Decimal("0"), Decimal("70"), credit_allowed=False)
    assert r.max_allowed_payment == Decimal("70")
    assert r.total_paid_now == Decimal("100")
    assert r.status == "settled"
    with pytest.raises(ValidationError):
        compute_settlement(Decimal("100"), Decimal("30"), Decimal("0"), Decimal("71"), credit_allowed=False)


def test_resettling_a_partial_payment_bills_the_balance_only():
    # 100 sale, 40 paid, 60 folded into the customer's balance.
    r = compute_settlement(
        Decimal("100"), Decimal("40"), Decimal("60"), Decimal("60"),
        credit_allowed=True, balance_includes_transaction=True,
    )
    assert r.bill_total == Decimal("60")
    assert r.max_allowed_payment == Decimal("60")
    assert r.total_paid_now == Decimal("100")
    assert r.status == "settled"
    assert r.new_customer_balance == 0


def test_resettling_a_partial_payment_with_another_part_payment():
    r = compute_settlement(
        Decimal("100"), Decimal("40"), Decimal("60"), Decimal("10"),
        credit_allowed=True, balance_includes_transaction=True,
    )
    assert r.status == "partial_payment"
    assert r.credit_remaining == Decimal("50")
    assert r.total_paid_now == Decimal("50")


def test_store_credit_larger_than_bill_is_kept():
    r = compute_settlement(Decimal("30"), Decimal("0"), Decimal("-50"), Decimal("0"), credit_allowed=False)
    assert r.bill_total == Decimal("-20")
    assert r.max_allowed_payment == 0
    assert r.status == "settled"
    assert r.credit_remaining == 0
    assert r.new_customer_balance == Decimal("-20")
    with pytest.raises(ValidationError):
        compute_settlement(Decimal("30"), Decimal("0"), Decimal("-50"), Decimal("1"), credit_allowed=False)


def test_accepts_string_amounts():
    r = compute_settlement("100", "0", "0", "100.00", credit_allowed=False)
    assert r.status == "settled"
