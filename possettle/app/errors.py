"""
Domain error taxonomy for settlement, refunds and exchanges.

Every error carries a human-readable `detail` and the HTTP status the API
answers with. Validation and credit-policy errors are raised before any
store call; persistence errors are raised only after compensation ran.
"""
from __future__ import annotations

from typing import Optional


class SettlementError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(SettlementError):
    status_code = 400


class CreditPolicyViolation(SettlementError):
    status_code = 400


class InvalidTransition(SettlementError):
    status_code = 409

    def __init__(self, from_status: str, to_status: str, detail: Optional[str] = None):
        super().__init__(detail or f"invalid status transition from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class NotFound(SettlementError):
    status_code = 404


class PersistenceFailure(SettlementError):
    status_code = 502

    def __init__(self, detail: str, *, step: Optional[str] = None):
        super().__init__(detail)
        self.step = step


class CriticalRollbackFailure(SettlementError):
    status_code = 500

    def __init__(self, transaction_id, *, step: Optional[str] = None, error: Optional[str] = None):
        super().__init__(
            f"rollback failed for transaction {transaction_id}; manual reconciliation required"
        )
        self.transaction_id = transaction_id
        self.step = step
        self.error = error
