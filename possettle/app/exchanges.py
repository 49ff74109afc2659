from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from .clock import Clock, LocalClock
from .errors import InvalidTransition, NotFound, ValidationError
from .logs import json_log
from .models import ExchangeNewLine, ExchangeReturnedLine, ExchangeTransaction, Transaction
from .money import ZERO, pct_of, q_money, to_decimal
from .payment_guards import assert_positive_quantity
from .refunds import collect_returned_lines
from .saga import Saga
from .status import EXCHANGED, SETTLED, assert_transition, normalize
from .stores import ExchangeStore, ProductStore, TransactionStore

CUSTOMER_PAYS = "customer_pays"
REFUND_DUE = "refund_due"
EVEN = "even"


def settlement_direction(difference: Decimal) -> str:
    if difference > 0:
        return CUSTOMER_PAYS
    if difference < 0:
        return REFUND_DUE
    return EVEN


def compute_exchange(
    txn: Transaction,
    returned: Iterable[tuple[int, object]],
    new_lines: Iterable[tuple[int, object, object]],
) -> ExchangeTransaction:
    """
    Price an exchange. `returned` is (transaction_product_id, quantity);
    `new_lines` is (product_id, quantity, unit_price).
    """
    if normalize(txn.status) != SETTLED:
        raise InvalidTransition(normalize(txn.status), EXCHANGED, f"only settled sales can be exchanged (transaction is {txn.status})")

    out_returned = []
    total_return = ZERO
    returned_qty = ZERO
    for line, qty in collect_returned_lines(txn, returned):
        amount = q_money(line.unit_price * qty)
        total_return += amount
        returned_qty += qty
        out_returned.append(
            ExchangeReturnedLine(
                transaction_product_id=line.id,
                product_id=line.product_id,
                returned_quantity=qty,
                unit_price=line.unit_price,
                amount=amount,
            )
        )

    out_new = []
    total_new = ZERO
    for product_id, qty, unit_price in new_lines:
        qty = to_decimal(qty)
        unit_price = to_decimal(unit_price)
        assert_positive_quantity(qty, f"quantity must be > 0 (product {product_id})")
        if unit_price < 0:
            raise ValidationError(f"unit price must be >= 0 (product {product_id})")
        amount = q_money(unit_price * qty)
        total_new += amount
        out_new.append(ExchangeNewLine(product_id=product_id, quantity=qty, unit_price=unit_price, amount=amount))

    difference = total_new - total_return
    return ExchangeTransaction(
        selling_transaction_id=txn.id,
        customer_id=txn.customer_id,
        returned_lines=out_returned,
        new_lines=out_new,
        total_return_amount=total_return,
        total_new_amount=total_new,
        total_exchanged_amount=difference,
        total_exchanged_vat=q_money(pct_of(difference, txn.vat)),
        product_exchanged_quantity=returned_qty,
    )


class ExchangeService:
    def __init__(
        self,
        transactions: TransactionStore,
        exchanges: ExchangeStore,
        *,
        products: Optional[ProductStore] = None,
        clock: Optional[Clock] = None,
    ):
        self.transactions = transactions
        self.exchanges = exchanges
        self.products = products
        self.clock = clock or LocalClock()

    async def _priced(self, new_lines) -> list[tuple[int, object, object]]:
        """Replacement items are priced from the catalogue when one is attached."""
        if self.products is None:
            out = []
            for product_id, qty, unit_price in new_lines:
                if unit_price is None:
                    raise ValidationError(f"unit price is required (product {product_id})")
                out.append((product_id, qty, unit_price))
            return out
        catalogue = {p.id: p for p in await self.products.get_all()}
        out = []
        for product_id, qty, _ in new_lines:
            p = catalogue.get(product_id)
            if p is None:
                raise ValidationError(f"product {product_id} not found")
            out.append((product_id, qty, p.price))
        return out

    async def create(
        self,
        selling_transaction_id: int,
        returned: Iterable[tuple[int, object]],
        new_lines: Iterable[tuple[int, object, object]],
        acting_user_id: Optional[int] = None,
    ) -> ExchangeTransaction:
        txn = await self.transactions.get_by_id(selling_transaction_id)
        if txn is None:
            raise NotFound(f"transaction {selling_transaction_id} not found")
        draft = compute_exchange(txn, list(returned), await self._priced(list(new_lines)))
        assert_transition(txn.status, EXCHANGED)
        draft = draft.model_copy(update={"exchange_time": self.clock.now(), "created_by": acting_user_id})

        original_status = normalize(txn.status)
        saga = Saga("exchange", selling_transaction_id)
        await saga.step(
            "change_status",
            lambda: self.transactions.change_status(selling_transaction_id, EXCHANGED, acting_user_id),
            lambda: self.transactions.change_status(selling_transaction_id, original_status, acting_user_id),
        )
        exchange = await saga.step("create_exchange", lambda: self.exchanges.create(draft))

        json_log(
            "info",
            "exchange.created",
            exchange_id=exchange.id,
            transaction_id=selling_transaction_id,
            difference=str(exchange.total_exchanged_amount),
            direction=settlement_direction(exchange.total_exchanged_amount),
            user_id=acting_user_id,
        )
        return exchange

    async def get(self, exchange_id: int) -> ExchangeTransaction:
        e = await self.exchanges.get_by_id(exchange_id)
        if e is None:
            raise NotFound(f"exchange {exchange_id} not found")
        return e

    async def list(self, selling_transaction_id: Optional[int] = None) -> list[ExchangeTransaction]:
        rows = await self.exchanges.get_all()
        if selling_transaction_id is None:
            return rows
        return [e for e in rows if e.selling_transaction_id == selling_transaction_id]
