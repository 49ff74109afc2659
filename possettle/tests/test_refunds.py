import asyncio
from decimal import Decimal

import pytest

from possettle.app.clock import FixedClock
from possettle.app.errors import InvalidTransition, NotFound, PersistenceFailure, ValidationError
from possettle.app.memory_stores import MemoryRefundStore, MemoryTransactionStore
from possettle.app.models import Modifier, Transaction, TransactionProduct
from possettle.app.refunds import RefundService, compute_refund


def _sale(status="settled"):
    return Transaction(
        id=10,
        status=status,
        vat=Decimal("10"),
        customer_id=3,
        products=[
            TransactionProduct(id=1, product_id=100, quantity=Decimal("5"), selling_price=Decimal("10")),
            TransactionProduct(
                id=2,
                product_id=200,
                quantity=Decimal("2"),
                selling_price=Decimal("4"),
                modifiers=[Modifier(name="large", extra_price=Decimal("1"))],
            ),
        ],
    )


def test_refund_two_of_five_units_with_ten_percent_tax():
    r = compute_refund(_sale(), [(1, Decimal("2"))])
    assert r.total_amount == Decimal("20")
    assert r.total_vat == Decimal("2.00")
    assert r.selling_transaction_id == 10
    assert r.customer_id == 3
    assert r.lines[0].returned_quantity == Decimal("2")


def test_refund_amount_is_linear_in_quantity():
    one = compute_refund(_sale(), [(1, Decimal("1"))]).total_amount
    for q in range(1, 6):
        assert compute_refund(_sale(), [(1, Decimal(q))]).total_amount == one * q


def test_refund_includes_modifier_extras():
    r = compute_refund(_sale(), [(2, Decimal("1"))])
    assert r.total_amount == Decimal("5")


def test_repeated_lines_are_summed_before_quantity_check():
    r = compute_refund(_sale(), [(1, Decimal("2")), (1, Decimal("3"))])
    assert len(r.lines) == 1
    assert r.lines[0].returned_quantity == Decimal("5")
    with pytest.raises(ValidationError):
        compute_refund(_sale(), [(1, Decimal("3")), (1, Decimal("3"))])


@pytest.mark.parametrize(
    "lines",
    [
        [],
        [(1, Decimal("0"))],
        [(1, Decimal("-1"))],
        [(1, Decimal("6"))],
        [(99, Decimal("1"))],
    ],
)
def test_bad_refund_lines_are_rejected(lines):
    with pytest.raises(ValidationError):
        compute_refund(_sale(), lines)


def test_only_settled_sales_are_refundable():
    with pytest.raises(InvalidTransition):
        compute_refund(_sale("billed"), [(1, Decimal("1"))])


def test_refund_service_marks_original_refunded():
    txns = MemoryTransactionStore([_sale()])
    refunds = MemoryRefundStore()
    svc = RefundService(txns, refunds, clock=FixedClock())
    r = asyncio.run(svc.create(10, [(1, Decimal("2"))], 4, is_cash=False))
    assert r.id == 1
    assert r.created_by == 4
    assert r.is_cash is False
    assert r.refund_time is not None
    assert asyncio.run(txns.get_by_id(10)).status == "refunded"
    assert asyncio.run(svc.list(10)) == [r]
    assert asyncio.run(svc.get(1)) == r


def test_refund_cannot_run_twice():
    txns = MemoryTransactionStore([_sale()])
    svc = RefundService(txns, MemoryRefundStore())
    asyncio.run(svc.create(10, [(1, Decimal("1"))]))
    with pytest.raises(InvalidTransition):
        asyncio.run(svc.create(10, [(1, Decimal("1"))]))


def test_failed_refund_record_restores_status():
    txns = MemoryTransactionStore([_sale()])
    refunds = MemoryRefundStore()
    refunds.fail_next("create")
    svc = RefundService(txns, refunds)
    with pytest.raises(PersistenceFailure):
        asyncio.run(svc.create(10, [(1, Decimal("1"))]))
    assert asyncio.run(txns.get_by_id(10)).status == "settled"
    assert asyncio.run(refunds.get_all()) == []


def test_refund_lookup_errors():
    svc = RefundService(MemoryTransactionStore(), MemoryRefundStore())
    with pytest.raises(NotFound):
        asyncio.run(svc.create(10, [(1, Decimal("1"))]))
    with pytest.raises(NotFound):
        asyncio.run(svc.get(5))
