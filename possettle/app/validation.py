from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BeforeValidator


def _to_lower_str(v):
    if v is None:
        return v
    return str(v).strip().lower()


def _to_snake_lower(v):
    if v is None:
        return v
    return str(v).strip().lower().replace(" ", "_").replace("-", "_")


# Canonical values mirror the status strings persisted by existing tills.
TransactionStatus = Annotated[
    Literal[
        "draft",
        "billed",
        "hold",
        "pending_payment",
        "partial_payment",
        "settled",
        "cancelled",
        "refunded",
        "exchanged",
    ],
    BeforeValidator(_to_snake_lower),
]

DiscountKind = Annotated[Literal["percentage", "fixed"], BeforeValidator(_to_lower_str)]

# Scope of a discount definition; "shop" applies to every cart.
DiscountScope = Annotated[Literal["shop", "product", "category", "customer"], BeforeValidator(_to_lower_str)]

RecordStatus = Annotated[Literal["active", "void"], BeforeValidator(_to_lower_str)]
