from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class LocalClock:
    """
    Business timestamps are local wall-clock and timezone-naive.
    Kept for compatibility with data written by existing tills.
    """

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    def __init__(self, at: Optional[datetime] = None):
        self._at = at or datetime(2026, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self._at

    def advance(self, **delta) -> None:
        self._at = self._at + timedelta(**delta)


def invoice_number(now: datetime, prefix: str = "INV") -> str:
    return f"{prefix}-{now:%Y%m%d%H%M%S}"
