from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from .validation import DiscountKind, DiscountScope, RecordStatus, TransactionStatus


class Modifier(BaseModel):
    name: str = ""
    extra_price: Decimal = Decimal("0")


class TransactionProduct(BaseModel):
    id: Optional[int] = None
    product_id: int
    category_id: Optional[int] = None
    quantity: Decimal
    selling_price: Decimal
    # Tax rate (percent) recorded on the line at sale time.
    vat: Decimal = Decimal("0")
    modifiers: List[Modifier] = []

    @property
    def unit_price(self) -> Decimal:
        return self.selling_price + sum((m.extra_price for m in self.modifiers), Decimal("0"))

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Transaction(BaseModel):
    id: Optional[int] = None
    status: TransactionStatus = "draft"
    subtotal: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    total_vat: Decimal = Decimal("0")
    total_discount: Decimal = Decimal("0")
    total_service_charge: Decimal = Decimal("0")
    # Aggregate tax percentage applied at sale time; refunds reuse it.
    vat: Decimal = Decimal("0")
    amount_paid_cash: Decimal = Decimal("0")
    amount_credit_remaining: Decimal = Decimal("0")
    credit_days: int = 0
    customer_id: Optional[int] = None
    table_id: Optional[int] = None
    reservation_id: Optional[int] = None
    invoice_number: Optional[str] = None
    discount_note: Optional[str] = None
    selling_time: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None
    products: List[TransactionProduct] = []

    def line(self, transaction_product_id: int) -> Optional[TransactionProduct]:
        for p in self.products:
            if p.id == transaction_product_id:
                return p
        return None


class Customer(BaseModel):
    id: int
    name: str = ""
    # Positive: customer owes the store. Negative: store credit.
    balance_amount: Decimal = Decimal("0")
    credit_allowed: bool = False


class Discount(BaseModel):
    id: Optional[int] = None
    name: str
    type: DiscountKind
    value: Decimal
    max_discount_amount: Optional[Decimal] = None
    min_purchase_amount: Optional[Decimal] = None
    applicable_on: DiscountScope = "shop"
    is_stackable: bool = False
    # Lower runs first.
    priority: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = None
    times_used: int = 0
    is_active: bool = True
    product_ids: List[int] = []
    category_ids: List[int] = []
    customer_ids: List[int] = []


class TaxType(BaseModel):
    id: Optional[int] = None
    name: str
    value: Decimal
    is_percentage: bool = True
    calculation_order: int = 0
    applies_to_selling: bool = True
    is_active: bool = True


class ServiceCharge(BaseModel):
    id: Optional[int] = None
    name: str
    value: Decimal
    is_percentage: bool = True
    is_active: bool = True


class Product(BaseModel):
    id: int
    name: str = ""
    category_id: Optional[int] = None
    price: Decimal = Decimal("0")
    active_discounts: List[Discount] = []


class RefundLine(BaseModel):
    id: Optional[int] = None
    transaction_product_id: int
    returned_quantity: Decimal
    total_amount: Decimal
    total_vat: Decimal


class RefundTransaction(BaseModel):
    id: Optional[int] = None
    selling_transaction_id: int
    customer_id: Optional[int] = None
    total_amount: Decimal
    total_vat: Decimal
    is_cash: bool = True
    refund_time: Optional[datetime] = None
    created_by: Optional[int] = None
    status: RecordStatus = "active"
    lines: List[RefundLine] = []


class ExchangeReturnedLine(BaseModel):
    transaction_product_id: int
    product_id: int
    returned_quantity: Decimal
    unit_price: Decimal
    amount: Decimal


class ExchangeNewLine(BaseModel):
    product_id: int
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


class ExchangeTransaction(BaseModel):
    id: Optional[int] = None
    selling_transaction_id: int
    customer_id: Optional[int] = None
    returned_lines: List[ExchangeReturnedLine] = []
    new_lines: List[ExchangeNewLine] = []
    total_return_amount: Decimal
    total_new_amount: Decimal
    # new - returned: positive means the customer pays, negative means a refund is due.
    total_exchanged_amount: Decimal
    total_exchanged_vat: Decimal = Decimal("0")
    product_exchanged_quantity: Decimal = Decimal("0")
    exchange_time: Optional[datetime] = None
    created_by: Optional[int] = None
    status: RecordStatus = "active"


class Cart(BaseModel):
    products: List[TransactionProduct] = []
    discount_ids: List[int] = []
    manual_discount: Optional[Decimal] = None
    discount_note: Optional[str] = None
    # None means every active selling tax.
    tax_ids: Optional[List[int]] = None
    manual_tax: Optional[Decimal] = None
    manual_tax_is_percentage: bool = True
    service_charge_ids: List[int] = []
    customer_id: Optional[int] = None
    table_id: Optional[int] = None
    reservation_id: Optional[int] = None
    credit_days: int = 0
