"""
Transaction status state machine.

The edge table below is the only source of truth for which status changes
a sale may go through. Callers validate here before touching any store.
"""
from __future__ import annotations

from typing import Optional

from .errors import CreditPolicyViolation, InvalidTransition

DRAFT = "draft"
BILLED = "billed"
HOLD = "hold"
PENDING_PAYMENT = "pending_payment"
PARTIAL_PAYMENT = "partial_payment"
SETTLED = "settled"
CANCELLED = "cancelled"
REFUNDED = "refunded"
EXCHANGED = "exchanged"

VALID_STATES: tuple[str, ...] = (
    DRAFT,
    BILLED,
    HOLD,
    PENDING_PAYMENT,
    PARTIAL_PAYMENT,
    SETTLED,
    CANCELLED,
    REFUNDED,
    EXCHANGED,
)

TERMINAL_STATES = frozenset({CANCELLED, REFUNDED, EXCHANGED})

# States a payment can be taken from.
PAYABLE_STATES = frozenset({DRAFT, BILLED, HOLD, PENDING_PAYMENT, PARTIAL_PAYMENT})

# Outcomes that leave money owing and therefore need the customer on credit.
CREDIT_STATES = frozenset({PENDING_PAYMENT, PARTIAL_PAYMENT})

# States whose unpaid amount has already been folded into the customer's balance.
FOLDED_STATES = frozenset({PENDING_PAYMENT, PARTIAL_PAYMENT})

# Excluded from the active sales list.
CLOSED_STATES = frozenset({CANCELLED, REFUNDED, EXCHANGED})


def _build_edges() -> dict[str, frozenset[str]]:
    edges: dict[str, set[str]] = {s: set() for s in VALID_STATES}
    edges[DRAFT].add(BILLED)
    # Park / resume a cart.
    edges[DRAFT].add(HOLD)
    edges[HOLD].add(DRAFT)
    edges[HOLD].add(BILLED)
    for s in PAYABLE_STATES:
        edges[s].update({SETTLED, PARTIAL_PAYMENT, PENDING_PAYMENT})
    edges[SETTLED].update({REFUNDED, EXCHANGED})
    # A settled sale is reversed by a refund, never cancelled.
    for s in VALID_STATES:
        if s not in TERMINAL_STATES and s != SETTLED:
            edges[s].add(CANCELLED)
    return {s: frozenset(t) for s, t in edges.items()}


EDGES: dict[str, frozenset[str]] = _build_edges()

LABELS = {
    DRAFT: "Draft",
    BILLED: "Billed",
    HOLD: "Hold",
    PENDING_PAYMENT: "Pending Payment",
    PARTIAL_PAYMENT: "Partial Payment",
    SETTLED: "Settled",
    CANCELLED: "Cancelled",
    REFUNDED: "Refunded",
    EXCHANGED: "Exchanged",
}


def normalize(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    s = str(status).strip().lower().replace(" ", "_").replace("-", "_")
    return s or None


def is_valid(status: Optional[str]) -> bool:
    return normalize(status) in VALID_STATES


def is_terminal(status: str) -> bool:
    return normalize(status) in TERMINAL_STATES


def label(status: str) -> str:
    s = normalize(status)
    if s in LABELS:
        return LABELS[s]
    return (status or "").strip().title()


def allowed_targets(status: str) -> frozenset[str]:
    return EDGES.get(normalize(status) or "", frozenset())


def can_transition(from_status: str, to_status: str) -> bool:
    src = normalize(from_status)
    dst = normalize(to_status)
    if src in TERMINAL_STATES:
        return False
    return dst in EDGES.get(src or "", frozenset())


def assert_transition(from_status: str, to_status: str, *, credit_allowed: Optional[bool] = None) -> str:
    """
    Validate one edge and return the normalized target status.

    `credit_allowed` is only consulted for targets that leave money owing;
    pass None when the move carries no payment (bill, hold, cancel).
    """
    src = normalize(from_status) or ""
    dst = normalize(to_status) or ""
    if src in TERMINAL_STATES:
        raise InvalidTransition(src, dst, f"transaction is {src}; no further status changes are allowed")
    if not can_transition(src, dst):
        raise InvalidTransition(src, dst)
    if dst in CREDIT_STATES and credit_allowed is False:
        raise CreditPolicyViolation(f"customer is not allowed credit; cannot move to {dst}")
    return dst
