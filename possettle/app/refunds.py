"""
Refunds against a settled sale.

Creating a refund moves the original sale to `refunded` first and then
writes the refund record; when the record cannot be written the status move
is undone.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from .clock import Clock, LocalClock
from .errors import InvalidTransition, NotFound, ValidationError
from .logs import json_log
from .models import RefundLine, RefundTransaction, Transaction, TransactionProduct
from .money import ZERO, pct_of, q_money, to_decimal
from .payment_guards import assert_not_over_returned, assert_positive_quantity
from .saga import Saga
from .status import REFUNDED, SETTLED, assert_transition, normalize
from .stores import RefundStore, TransactionStore


def collect_returned_lines(txn: Transaction, lines: Iterable[tuple[int, object]]) -> list[tuple[TransactionProduct, Decimal]]:
    """
    Resolve (transaction_product_id, quantity) pairs against the sale.

    Repeated ids are summed before the sold-quantity check.
    """
    merged: dict[int, Decimal] = {}
    for tp_id, qty in lines:
        qty = to_decimal(qty)
        assert_positive_quantity(qty, f"returned quantity must be > 0 (line {tp_id})")
        if txn.line(tp_id) is None:
            raise ValidationError(f"line {tp_id} does not belong to transaction {txn.id}")
        merged[tp_id] = merged.get(tp_id, ZERO) + qty
    if not merged:
        raise ValidationError("at least one returned line is required")

    out = []
    for tp_id, qty in merged.items():
        line = txn.line(tp_id)
        assert_not_over_returned(qty, line.quantity, f"returned quantity exceeds sold quantity for line {tp_id}")
        out.append((line, qty))
    return out


def compute_refund(txn: Transaction, lines: Iterable[tuple[int, object]]) -> RefundTransaction:
    if normalize(txn.status) != SETTLED:
        raise InvalidTransition(normalize(txn.status), REFUNDED, f"only settled sales can be refunded (transaction is {txn.status})")
    refund_lines = []
    total = ZERO
    vat = ZERO
    for line, qty in collect_returned_lines(txn, lines):
        amount = q_money(line.unit_price * qty)
        line_vat = q_money(pct_of(amount, txn.vat))
        total += amount
        vat += line_vat
        refund_lines.append(
            RefundLine(transaction_product_id=line.id, returned_quantity=qty, total_amount=amount, total_vat=line_vat)
        )
    return RefundTransaction(
        selling_transaction_id=txn.id,
        customer_id=txn.customer_id,
        total_amount=total,
        total_vat=vat,
        lines=refund_lines,
    )


class RefundService:
    def __init__(self, transactions: TransactionStore, refunds: RefundStore, *, clock: Optional[Clock] = None):
        self.transactions = transactions
        self.refunds = refunds
        self.clock = clock or LocalClock()

    async def create(
        self,
        selling_transaction_id: int,
        lines: Iterable[tuple[int, object]],
        acting_user_id: Optional[int] = None,
        *,
        is_cash: bool = True,
    ) -> RefundTransaction:
        txn = await self.transactions.get_by_id(selling_transaction_id)
        if txn is None:
            raise NotFound(f"transaction {selling_transaction_id} not found")
        draft = compute_refund(txn, list(lines))
        assert_transition(txn.status, REFUNDED)
        draft = draft.model_copy(
            update={"is_cash": bool(is_cash), "refund_time": self.clock.now(), "created_by": acting_user_id}
        )

        original_status = normalize(txn.status)
        saga = Saga("refund", selling_transaction_id)
        await saga.step(
            "change_status",
            lambda: self.transactions.change_status(selling_transaction_id, REFUNDED, acting_user_id),
            lambda: self.transactions.change_status(selling_transaction_id, original_status, acting_user_id),
        )
        refund = await saga.step("create_refund", lambda: self.refunds.create(draft))

        json_log(
            "info",
            "refund.created",
            refund_id=refund.id,
            transaction_id=selling_transaction_id,
            total_amount=str(refund.total_amount),
            total_vat=str(refund.total_vat),
            user_id=acting_user_id,
        )
        return refund

    async def get(self, refund_id: int) -> RefundTransaction:
        r = await self.refunds.get_by_id(refund_id)
        if r is None:
            raise NotFound(f"refund {refund_id} not found")
        return r

    async def list(self, selling_transaction_id: Optional[int] = None) -> list[RefundTransaction]:
        rows = await self.refunds.get_all()
        if selling_transaction_id is None:
            return rows
        return [r for r in rows if r.selling_transaction_id == selling_transaction_id]
