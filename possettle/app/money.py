from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from .config import settings

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(v) -> Decimal:
    """
    Coerce request/store values to Decimal without going through float.
    None and empty strings count as zero.
    """
    if isinstance(v, Decimal):
        return v
    if v is None or (isinstance(v, str) and v.strip() == ""):
        return ZERO
    try:
        return Decimal(str(v))
    except InvalidOperation:
        raise ValueError(f"invalid money value: {v!r}")


def q_money(v: Decimal) -> Decimal:
    return (v or ZERO).quantize(settings.money_quantum, rounding=ROUND_HALF_UP)


def pct_of(base: Decimal, pct: Decimal) -> Decimal:
    # pct is on a 0..100 scale (10 means 10%).
    return base * pct / HUNDRED


def clamp_non_negative(x: Decimal) -> Decimal:
    return x if x > ZERO else ZERO


def money_str(v: Decimal) -> str:
    return str(q_money(v))
