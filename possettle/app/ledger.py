from __future__ import annotations

from decimal import Decimal
from typing import Optional

from .errors import NotFound, PersistenceFailure
from .money import ZERO
from .stores import CustomerStore


class CustomerBalanceLedger:
    """
    Writes customer balances computed elsewhere.

    No read-modify-write merging happens here: the caller's value wins, so two
    terminals settling against one customer can lose an update. Passing
    `expected=` turns on a compare-before-write check for callers that want it.
    """

    def __init__(self, customers: CustomerStore):
        self.customers = customers

    async def get_balance(self, customer_id: Optional[int]) -> Decimal:
        if customer_id is None:
            return ZERO
        c = await self.customers.get_by_id(customer_id)
        if c is None:
            raise NotFound(f"customer {customer_id} not found")
        return c.balance_amount

    async def set_balance(self, customer_id: int, new_balance: Decimal, *, expected: Optional[Decimal] = None) -> Decimal:
        c = await self.customers.get_by_id(customer_id)
        if c is None:
            raise NotFound(f"customer {customer_id} not found")
        if expected is not None and c.balance_amount != expected:
            raise PersistenceFailure(
                f"customer {customer_id} balance changed ({c.balance_amount} != expected {expected})",
                step="customer_balance",
            )
        previous = c.balance_amount
        await self.customers.update(c.model_copy(update={"balance_amount": new_balance}))
        return previous
