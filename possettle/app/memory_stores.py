"""
In-memory store implementations.

Used by the API when STORE_BACKEND=memory and by the tests. `fail_next`
makes the next call(s) to a method raise, which is how the rollback paths
are exercised.
"""
from __future__ import annotations

from collections import defaultdict
from itertools import count
from typing import Any, Optional

from .models import (
    Customer,
    Discount,
    ExchangeTransaction,
    Product,
    RefundTransaction,
    ServiceCharge,
    TaxType,
    Transaction,
)


class StoreUnavailable(RuntimeError):
    pass


class _Faults:
    def __init__(self):
        self._faults: dict[str, list[Exception]] = defaultdict(list)
        self.calls: list[tuple[str, tuple]] = []

    def fail_next(self, method: str, exc: Optional[Exception] = None, *, times: int = 1):
        for _ in range(times):
            self._faults[method].append(exc or StoreUnavailable(f"{method} failed"))

    def _enter(self, method: str, *args):
        self.calls.append((method, args))
        pending = self._faults.get(method)
        if pending:
            raise pending.pop(0)


class MemoryTransactionStore(_Faults):
    def __init__(self, rows: Optional[list[Transaction]] = None):
        super().__init__()
        self._rows: dict[int, Transaction] = {}
        self._last_id = 0
        self._last_line_id = 0
        for r in rows or []:
            self._put(r)

    def _line(self, p):
        if p.id is None:
            self._last_line_id += 1
            return p.model_copy(update={"id": self._last_line_id})
        self._last_line_id = max(self._last_line_id, p.id)
        return p

    def _put(self, txn: Transaction) -> Transaction:
        if txn.id is None:
            self._last_id += 1
            txn = txn.model_copy(update={"id": self._last_id})
        else:
            self._last_id = max(self._last_id, txn.id)
        products = [self._line(p) for p in txn.products]
        txn = txn.model_copy(update={"products": products})
        self._rows[txn.id] = txn
        return txn

    async def create(self, dto: Transaction) -> Transaction:
        self._enter("create", dto)
        return self._put(dto.model_copy(update={"id": None}))

    async def update(self, transaction_id: int, dto: dict[str, Any]) -> Transaction:
        self._enter("update", transaction_id, dto)
        cur = self._rows.get(transaction_id)
        if cur is None:
            raise KeyError(f"transaction {transaction_id} not found")
        self._rows[transaction_id] = cur.model_copy(update=dict(dto))
        return self._rows[transaction_id]

    async def change_status(self, transaction_id: int, status: str, acting_user_id: Optional[int]) -> Transaction:
        self._enter("change_status", transaction_id, status, acting_user_id)
        cur = self._rows.get(transaction_id)
        if cur is None:
            raise KeyError(f"transaction {transaction_id} not found")
        self._rows[transaction_id] = cur.model_copy(update={"status": status, "updated_by": acting_user_id})
        return self._rows[transaction_id]

    async def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        return self._rows.get(transaction_id)

    async def get_all(self) -> list[Transaction]:
        return [self._rows[k] for k in sorted(self._rows)]

    async def delete(self, transaction_id: int) -> bool:
        self._enter("delete", transaction_id)
        return self._rows.pop(transaction_id, None) is not None


class MemoryCustomerStore(_Faults):
    def __init__(self, rows: Optional[list[Customer]] = None):
        super().__init__()
        self._rows: dict[int, Customer] = {c.id: c for c in rows or []}

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        return self._rows.get(customer_id)

    async def update(self, customer: Customer) -> None:
        self._enter("update", customer)
        self._rows[customer.id] = customer


class _ActiveFilterStore(_Faults):
    def __init__(self, rows=None):
        super().__init__()
        self._rows = list(rows or [])

    async def get_all(self, is_active: Optional[bool] = None):
        if is_active is None:
            return list(self._rows)
        return [r for r in self._rows if r.is_active == is_active]


class MemoryDiscountStore(_ActiveFilterStore):
    _rows: list[Discount]


class MemoryTaxStore(_ActiveFilterStore):
    _rows: list[TaxType]


class MemoryServiceChargeStore(_ActiveFilterStore):
    _rows: list[ServiceCharge]


class MemoryProductStore:
    def __init__(self, rows: Optional[list[Product]] = None):
        self._rows = list(rows or [])

    async def get_all(self) -> list[Product]:
        return list(self._rows)


class _RecordStore(_Faults):
    def __init__(self):
        super().__init__()
        self._rows: dict[int, Any] = {}
        self._ids = count(1)

    async def create(self, dto):
        self._enter("create", dto)
        row = dto.model_copy(update={"id": next(self._ids)})
        self._rows[row.id] = row
        return row

    async def get_by_id(self, record_id: int):
        return self._rows.get(record_id)

    async def get_all(self):
        return [self._rows[k] for k in sorted(self._rows)]


class MemoryRefundStore(_RecordStore):
    _rows: dict[int, RefundTransaction]


class MemoryExchangeStore(_RecordStore):
    _rows: dict[int, ExchangeTransaction]


class MemoryReservationStore(_Faults):
    def __init__(self):
        super().__init__()
        self.completed: list[int] = []

    async def complete_reservation(self, reservation_id: int) -> None:
        self._enter("complete_reservation", reservation_id)
        self.completed.append(reservation_id)
