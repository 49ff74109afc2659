"""
Async contracts for the collaborators that own persistence.

Anything satisfying these protocols can back the services; the package ships
only the in-memory implementations in `memory_stores`.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol

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


class TransactionStore(Protocol):
    async def create(self, dto: Transaction) -> Transaction: ...

    async def update(self, transaction_id: int, dto: dict[str, Any]) -> Transaction: ...

    async def change_status(self, transaction_id: int, status: str, acting_user_id: Optional[int]) -> Transaction: ...

    async def get_by_id(self, transaction_id: int) -> Optional[Transaction]: ...

    async def get_all(self) -> list[Transaction]: ...

    async def delete(self, transaction_id: int) -> bool: ...


class CustomerStore(Protocol):
    async def get_by_id(self, customer_id: int) -> Optional[Customer]: ...

    async def update(self, customer: Customer) -> None: ...


class DiscountStore(Protocol):
    async def get_all(self, is_active: Optional[bool] = None) -> list[Discount]: ...


class TaxStore(Protocol):
    async def get_all(self, is_active: Optional[bool] = None) -> list[TaxType]: ...


class ServiceChargeStore(Protocol):
    async def get_all(self, is_active: Optional[bool] = None) -> list[ServiceCharge]: ...


class ProductStore(Protocol):
    async def get_all(self) -> list[Product]: ...


class RefundStore(Protocol):
    async def create(self, dto: RefundTransaction) -> RefundTransaction: ...

    async def get_by_id(self, refund_id: int) -> Optional[RefundTransaction]: ...

    async def get_all(self) -> list[RefundTransaction]: ...


class ExchangeStore(Protocol):
    async def create(self, dto: ExchangeTransaction) -> ExchangeTransaction: ...

    async def get_by_id(self, exchange_id: int) -> Optional[ExchangeTransaction]: ...

    async def get_all(self) -> list[ExchangeTransaction]: ...


class ReservationStore(Protocol):
    async def complete_reservation(self, reservation_id: int) -> None: ...
