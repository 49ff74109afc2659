from __future__ import annotations

from typing import Optional

from .clock import Clock, LocalClock, invoice_number
from .config import settings
from .discounts import assert_selectable, manual_discount
from .errors import NotFound, ValidationError
from .logs import json_log
from .models import Cart, Transaction
from .saga import Saga
from .status import BILLED, CANCELLED, CLOSED_STATES, DRAFT, HOLD, assert_transition, is_valid, normalize
from .stores import CustomerStore, DiscountStore, ServiceChargeStore, TaxStore, TransactionStore
from .taxes import manual_tax, selling_taxes
from .totals import Totals, compute_totals


class TransactionService:
    def __init__(
        self,
        transactions: TransactionStore,
        discounts: DiscountStore,
        taxes: TaxStore,
        service_charges: ServiceChargeStore,
        customers: Optional[CustomerStore] = None,
        *,
        clock: Optional[Clock] = None,
    ):
        self.transactions = transactions
        self.discounts = discounts
        self.taxes = taxes
        self.service_charges = service_charges
        self.customers = customers
        self.clock = clock or LocalClock()

    async def price(self, cart: Cart) -> Totals:
        subtotal_probe = compute_totals(cart.products)

        all_discounts = {d.id: d for d in await self.discounts.get_all()}
        selected = []
        for did in cart.discount_ids:
            d = all_discounts.get(did)
            if d is None:
                raise ValidationError(f"discount {did} not found")
            selected.append(d)
        assert_selectable(selected, subtotal_probe.subtotal, self.clock.now())
        if cart.manual_discount:
            selected.append(manual_discount(cart.manual_discount, cart.discount_note))

        active_taxes = selling_taxes(await self.taxes.get_all(is_active=True))
        if cart.tax_ids is None:
            taxes = active_taxes
        else:
            by_id = {t.id: t for t in active_taxes}
            missing = [tid for tid in cart.tax_ids if tid not in by_id]
            if missing:
                raise ValidationError(f"tax {missing[0]} not found or not a selling tax")
            taxes = [by_id[tid] for tid in cart.tax_ids]
        if cart.manual_tax:
            taxes = [*taxes, manual_tax(cart.manual_tax, is_percentage=cart.manual_tax_is_percentage)]

        charges_by_id = {c.id: c for c in await self.service_charges.get_all(is_active=True)}
        charges = []
        for cid in cart.service_charge_ids:
            if cid not in charges_by_id:
                raise ValidationError(f"service charge {cid} not found")
            charges.append(charges_by_id[cid])

        return compute_totals(cart.products, selected, taxes, charges)

    async def create_draft(self, cart: Cart, acting_user_id: Optional[int] = None) -> Transaction:
        if not cart.products:
            raise ValidationError("at least one product line is required")
        if cart.credit_days < 0:
            raise ValidationError("credit_days must be >= 0")
        if cart.customer_id is not None and self.customers is not None:
            if await self.customers.get_by_id(cart.customer_id) is None:
                raise NotFound(f"customer {cart.customer_id} not found")

        totals = await self.price(cart)
        now = self.clock.now()
        products = [p.model_copy(update={"vat": totals.tax.percentage}) for p in cart.products]
        txn = Transaction(
            status=DRAFT,
            subtotal=totals.subtotal,
            total_amount=totals.total,
            total_vat=totals.tax.amount,
            total_discount=totals.discount.total,
            total_service_charge=totals.service_charge,
            vat=totals.tax.percentage,
            credit_days=cart.credit_days,
            customer_id=cart.customer_id,
            table_id=cart.table_id,
            reservation_id=cart.reservation_id,
            discount_note=cart.discount_note,
            created_by=acting_user_id,
            created_at=now,
            updated_by=acting_user_id,
            updated_at=now,
            products=products,
        )
        created = await self.transactions.create(txn)
        json_log("info", "transaction.created", transaction_id=created.id, total=str(created.total_amount), user_id=acting_user_id)
        return created

    async def get(self, transaction_id: int) -> Transaction:
        txn = await self.transactions.get_by_id(transaction_id)
        if txn is None:
            raise NotFound(f"transaction {transaction_id} not found")
        return txn

    async def list(self, status: Optional[str] = None) -> list[Transaction]:
        rows = await self.transactions.get_all()
        if status is None:
            return rows
        if not is_valid(status):
            raise ValidationError(f"invalid status: {status}")
        s = normalize(status)
        return [t for t in rows if t.status == s]

    async def active_sales(self) -> list[Transaction]:
        return [t for t in await self.transactions.get_all() if t.status not in CLOSED_STATES]

    async def _move(self, transaction_id: int, target: str, acting_user_id: Optional[int]) -> Transaction:
        txn = await self.get(transaction_id)
        src = normalize(txn.status)
        assert_transition(src, target)
        out = await self.transactions.change_status(transaction_id, target, acting_user_id)
        json_log("info", "transaction.status_changed", transaction_id=transaction_id, from_status=src, to_status=target, user_id=acting_user_id)
        return out

    async def bill(self, transaction_id: int, acting_user_id: Optional[int] = None) -> Transaction:
        txn = await self.get(transaction_id)
        src = normalize(txn.status)
        assert_transition(src, BILLED)
        if txn.invoice_number:
            return await self._move(transaction_id, BILLED, acting_user_id)

        now = self.clock.now()
        saga = Saga("bill", transaction_id)
        await saga.step(
            "invoice_number",
            lambda: self.transactions.update(
                transaction_id,
                {"invoice_number": invoice_number(now, settings.invoice_prefix), "updated_by": acting_user_id, "updated_at": now},
            ),
            lambda: self.transactions.update(
                transaction_id,
                {"invoice_number": None, "updated_by": txn.updated_by, "updated_at": txn.updated_at},
            ),
        )
        out = await saga.step(
            "change_status",
            lambda: self.transactions.change_status(transaction_id, BILLED, acting_user_id),
        )
        json_log("info", "transaction.status_changed", transaction_id=transaction_id, from_status=src, to_status=BILLED, user_id=acting_user_id)
        return out

    async def hold(self, transaction_id: int, acting_user_id: Optional[int] = None) -> Transaction:
        return await self._move(transaction_id, HOLD, acting_user_id)

    async def resume(self, transaction_id: int, acting_user_id: Optional[int] = None) -> Transaction:
        return await self._move(transaction_id, DRAFT, acting_user_id)

    async def cancel(self, transaction_id: int, acting_user_id: Optional[int] = None) -> Transaction:
        return await self._move(transaction_id, CANCELLED, acting_user_id)
