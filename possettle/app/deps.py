from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException

from .clock import Clock, LocalClock
from .config import settings
from .exchanges import ExchangeService
from .memory_stores import (
    MemoryCustomerStore,
    MemoryDiscountStore,
    MemoryExchangeStore,
    MemoryProductStore,
    MemoryRefundStore,
    MemoryReservationStore,
    MemoryServiceChargeStore,
    MemoryTaxStore,
    MemoryTransactionStore,
)
from .refunds import RefundService
from .settlement import SettlementGuard, SettlementService
from .transactions import TransactionService


@dataclass
class Stores:
    transactions: MemoryTransactionStore = field(default_factory=MemoryTransactionStore)
    customers: MemoryCustomerStore = field(default_factory=MemoryCustomerStore)
    discounts: MemoryDiscountStore = field(default_factory=MemoryDiscountStore)
    taxes: MemoryTaxStore = field(default_factory=MemoryTaxStore)
    service_charges: MemoryServiceChargeStore = field(default_factory=MemoryServiceChargeStore)
    products: MemoryProductStore = field(default_factory=MemoryProductStore)
    refunds: MemoryRefundStore = field(default_factory=MemoryRefundStore)
    exchanges: MemoryExchangeStore = field(default_factory=MemoryExchangeStore)
    reservations: MemoryReservationStore = field(default_factory=MemoryReservationStore)
    clock: Clock = field(default_factory=LocalClock)
    # One guard per process so duplicate settles from any request are caught.
    settlement_guard: SettlementGuard = field(default_factory=SettlementGuard)


@lru_cache(maxsize=1)
def get_stores() -> Stores:
    if settings.store_backend != "memory":
        raise RuntimeError(f"unsupported STORE_BACKEND: {settings.store_backend}")
    return Stores()


def get_current_user(x_user_id: Optional[str] = Header(None, alias="X-User-Id")) -> Optional[int]:
    raw = (x_user_id or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid X-User-Id")


def get_transaction_service(stores: Stores = Depends(get_stores)) -> TransactionService:
    return TransactionService(
        stores.transactions,
        stores.discounts,
        stores.taxes,
        stores.service_charges,
        stores.customers,
        clock=stores.clock,
    )


def get_settlement_service(stores: Stores = Depends(get_stores)) -> SettlementService:
    return SettlementService(
        stores.transactions,
        stores.customers,
        stores.reservations,
        clock=stores.clock,
        guard=stores.settlement_guard,
    )


def get_refund_service(stores: Stores = Depends(get_stores)) -> RefundService:
    return RefundService(stores.transactions, stores.refunds, clock=stores.clock)


def get_exchange_service(stores: Stores = Depends(get_stores)) -> ExchangeService:
    return ExchangeService(stores.transactions, stores.exchanges, products=stores.products, clock=stores.clock)
