"""
Payment settlement.

`compute_settlement` is the pure arithmetic; `SettlementService` applies a
result through the stores as a four-step saga:

    update payment fields -> change status -> customer balance -> reservation

Sales in a folded state (partial/pending payment) already carry their unpaid
amount inside the customer balance, so a resettlement bills the balance
alone and the earlier payment is not subtracted a second time.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .clock import Clock, LocalClock, invoice_number
from .config import settings
from .errors import CreditPolicyViolation, InvalidTransition, NotFound
from .ledger import CustomerBalanceLedger
from .logs import json_log
from .models import Customer, Transaction
from .money import ZERO, clamp_non_negative, to_decimal
from .payment_guards import assert_payment_in_bounds
from .saga import Saga
from .status import (
    FOLDED_STATES,
    PARTIAL_PAYMENT,
    PAYABLE_STATES,
    PENDING_PAYMENT,
    SETTLED,
    assert_transition,
    normalize,
)
from .stores import CustomerStore, ReservationStore, TransactionStore


@dataclass(frozen=True)
class SettlementResult:
    bill_total: Decimal
    max_allowed_payment: Decimal
    payment: Decimal
    total_paid_now: Decimal
    credit_remaining: Decimal
    status: str
    new_customer_balance: Decimal


@dataclass(frozen=True)
class SettlementOutcome:
    result: SettlementResult
    transaction: Transaction
    customer: Optional[Customer] = None


def bill_amounts(
    transaction_total: Decimal,
    already_paid: Decimal,
    customer_balance: Decimal,
    *,
    balance_includes_transaction: bool = False,
) -> tuple[Decimal, Decimal]:
    """Return (bill_total, max_allowed_payment)."""
    if balance_includes_transaction:
        bill_total = customer_balance
        max_allowed = bill_total
    else:
        bill_total = transaction_total + customer_balance
        max_allowed = bill_total - already_paid
    return bill_total, clamp_non_negative(max_allowed)


def compute_settlement(
    transaction_total,
    already_paid,
    customer_balance,
    proposed_payment,
    *,
    credit_allowed: bool,
    balance_includes_transaction: bool = False,
) -> SettlementResult:
    transaction_total = to_decimal(transaction_total)
    already_paid = to_decimal(already_paid)
    customer_balance = to_decimal(customer_balance)
    payment = to_decimal(proposed_payment)

    bill_total, max_allowed = bill_amounts(
        transaction_total,
        already_paid,
        customer_balance,
        balance_includes_transaction=balance_includes_transaction,
    )
    assert_payment_in_bounds(payment, max_allowed)

    total_paid_now = already_paid + payment
    if balance_includes_transaction:
        credit_remaining = bill_total - payment
    else:
        credit_remaining = bill_total - total_paid_now

    if credit_remaining <= ZERO:
        # Store credit larger than the bill survives as a negative balance.
        return SettlementResult(
            bill_total=bill_total,
            max_allowed_payment=max_allowed,
            payment=payment,
            total_paid_now=total_paid_now,
            credit_remaining=ZERO,
            status=SETTLED,
            new_customer_balance=bill_total if bill_total < ZERO else ZERO,
        )

    status = PARTIAL_PAYMENT if total_paid_now > ZERO else PENDING_PAYMENT
    if not credit_allowed:
        raise CreditPolicyViolation(
            f"customer is not allowed credit; {credit_remaining} would remain unpaid"
        )
    return SettlementResult(
        bill_total=bill_total,
        max_allowed_payment=max_allowed,
        payment=payment,
        total_paid_now=total_paid_now,
        credit_remaining=credit_remaining,
        status=status,
        new_customer_balance=credit_remaining,
    )


class SettlementGuard:
    """Per-transaction settlement-in-progress tokens."""

    def __init__(self):
        self._held: set[int] = set()

    def acquire(self, transaction_id: int) -> bool:
        if transaction_id in self._held:
            return False
        self._held.add(transaction_id)
        return True

    def release(self, transaction_id: int) -> None:
        self._held.discard(transaction_id)

    def is_held(self, transaction_id: int) -> bool:
        return transaction_id in self._held


class SettlementService:
    def __init__(
        self,
        transactions: TransactionStore,
        customers: CustomerStore,
        reservations: Optional[ReservationStore] = None,
        *,
        clock: Optional[Clock] = None,
        guard: Optional[SettlementGuard] = None,
    ):
        self.transactions = transactions
        self.customers = customers
        self.reservations = reservations
        self.ledger = CustomerBalanceLedger(customers)
        self.clock = clock or LocalClock()
        self.guard = guard or SettlementGuard()

    async def _load(self, transaction_id: int) -> tuple[Transaction, Optional[Customer]]:
        txn = await self.transactions.get_by_id(transaction_id)
        if txn is None:
            raise NotFound(f"transaction {transaction_id} not found")
        customer = None
        if txn.customer_id is not None:
            customer = await self.customers.get_by_id(txn.customer_id)
            if customer is None:
                raise NotFound(f"customer {txn.customer_id} not found")
        status = normalize(txn.status)
        if status not in PAYABLE_STATES:
            raise InvalidTransition(status, SETTLED, f"transaction is {status}; it cannot take a payment")
        return txn, customer

    def _compute(self, txn: Transaction, customer: Optional[Customer], payment) -> SettlementResult:
        return compute_settlement(
            txn.total_amount,
            txn.amount_paid_cash,
            customer.balance_amount if customer else ZERO,
            payment,
            credit_allowed=bool(customer and customer.credit_allowed),
            balance_includes_transaction=normalize(txn.status) in FOLDED_STATES,
        )

    async def preview(self, transaction_id: int, payment=None) -> SettlementResult:
        """Settlement figures for the payment dialog; nothing is written."""
        txn, customer = await self._load(transaction_id)
        if payment is None:
            _, payment = bill_amounts(
                txn.total_amount,
                txn.amount_paid_cash,
                customer.balance_amount if customer else ZERO,
                balance_includes_transaction=normalize(txn.status) in FOLDED_STATES,
            )
        return self._compute(txn, customer, payment)

    async def settle(
        self,
        transaction_id: int,
        payment,
        acting_user_id: Optional[int] = None,
        *,
        credit_days: Optional[int] = None,
    ) -> Optional[SettlementOutcome]:
        if not self.guard.acquire(transaction_id):
            json_log("info", "settlement.duplicate_ignored", transaction_id=transaction_id)
            return None
        try:
            return await self._settle(transaction_id, payment, acting_user_id, credit_days)
        finally:
            self.guard.release(transaction_id)

    async def _settle(self, transaction_id, payment, acting_user_id, credit_days) -> SettlementOutcome:
        txn, customer = await self._load(transaction_id)
        result = self._compute(txn, customer, payment)
        original_status = normalize(txn.status)
        assert_transition(
            original_status,
            result.status,
            credit_allowed=bool(customer and customer.credit_allowed),
        )
        json_log(
            "info",
            "settlement.started",
            transaction_id=transaction_id,
            payment=str(result.payment),
            bill_total=str(result.bill_total),
            target_status=result.status,
        )

        now = self.clock.now()
        snapshot = {
            "amount_paid_cash": txn.amount_paid_cash,
            "amount_credit_remaining": txn.amount_credit_remaining,
            "credit_days": txn.credit_days,
            "invoice_number": txn.invoice_number,
            "selling_time": txn.selling_time,
            "updated_by": txn.updated_by,
            "updated_at": txn.updated_at,
        }
        patch = {
            "amount_paid_cash": result.total_paid_now,
            "amount_credit_remaining": result.credit_remaining,
            "credit_days": txn.credit_days if credit_days is None else int(credit_days),
            "invoice_number": txn.invoice_number or invoice_number(now, settings.invoice_prefix),
            "selling_time": now,
            "updated_by": acting_user_id,
            "updated_at": now,
        }

        saga = Saga("settlement", transaction_id)
        await saga.step(
            "update_payment",
            lambda: self.transactions.update(transaction_id, patch),
            lambda: self.transactions.update(transaction_id, snapshot),
        )
        await saga.step(
            "change_status",
            lambda: self.transactions.change_status(transaction_id, result.status, acting_user_id),
            lambda: self.transactions.change_status(transaction_id, original_status, acting_user_id),
        )
        if customer is not None:
            old_balance = customer.balance_amount
            await saga.step(
                "customer_balance",
                lambda: self.ledger.set_balance(customer.id, result.new_customer_balance),
                lambda: self.ledger.set_balance(customer.id, old_balance),
            )
        if result.status == SETTLED and txn.reservation_id is not None and self.reservations is not None:
            await saga.step(
                "complete_reservation",
                lambda: self.reservations.complete_reservation(txn.reservation_id),
            )

        json_log(
            "info",
            "transaction.status_changed",
            transaction_id=transaction_id,
            from_status=original_status,
            to_status=result.status,
            user_id=acting_user_id,
        )
        json_log(
            "info",
            "settlement.completed",
            transaction_id=transaction_id,
            status=result.status,
            total_paid=str(result.total_paid_now),
            credit_remaining=str(result.credit_remaining),
        )
        updated = await self.transactions.get_by_id(transaction_id)
        updated_customer = await self.customers.get_by_id(customer.id) if customer is not None else None
        return SettlementOutcome(result=result, transaction=updated or txn, customer=updated_customer)
