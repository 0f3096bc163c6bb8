"""
Error taxonomy for the points ledger.

Business-rule errors (InsufficientPoints, OutOfStock, AlreadyRedeemed) describe
expected outcomes that the caller shows to the user; they are never retried.
Transient store errors may be retried a bounded number of times.
"""
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.exc import DBAPIError, OperationalError


class LedgerError(Exception):
    code = "ledger_error"
    http_status = 500
    label = "Something Went Wrong"

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message or self.label)
        self.message = message or self.label
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "label": self.label, "detail": self.message, **self.details}


class ValidationError(LedgerError):
    code = "validation_error"
    http_status = 422
    label = "Invalid Request"


class NotFound(LedgerError):
    code = "not_found"
    http_status = 404
    label = "Reward Unavailable"


class BusinessRuleError(LedgerError):
    """Expected negative outcome of a redemption."""

    http_status = 409


class InsufficientPoints(BusinessRuleError):
    code = "insufficient_points"
    label = "Not Enough Points"

    def __init__(self, price: int, balance: int):
        deficit = price - balance
        super().__init__(f"You need {deficit} more points to redeem this reward.", deficit=deficit)
        self.deficit = deficit


class OutOfStock(BusinessRuleError):
    code = "out_of_stock"
    label = "Out of Stock"


class AlreadyRedeemed(BusinessRuleError):
    code = "already_redeemed"
    label = "Already Redeemed"


class TransientStoreError(LedgerError):
    """Infrastructure failure that is safe to retry."""

    http_status = 503


class ConcurrencyConflict(TransientStoreError):
    code = "concurrency_conflict"
    label = "Please Try Again"


class StoreUnavailable(TransientStoreError):
    code = "store_unavailable"
    label = "Service Unavailable"


_LOCK_MARKERS = ("database is locked", "database table is locked", "busy", "deadlock", "could not serialize")


def translate_db_error(exc: DBAPIError) -> Optional[TransientStoreError]:
    """Map a driver-level failure onto the transient taxonomy, or None if it is not transient."""
    text = str(getattr(exc, "orig", exc)).lower()
    if any(marker in text for marker in _LOCK_MARKERS):
        return ConcurrencyConflict(str(exc.orig) if exc.orig is not None else str(exc))
    if isinstance(exc, OperationalError) or exc.connection_invalidated:
        return StoreUnavailable(str(exc.orig) if exc.orig is not None else str(exc))
    return None
