"""Ledger error taxonomy.

Every error carries the HTTP status the API layer answers with, so services
stay free of FastAPI imports and routers only need one exception handler.
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for all ledger failures."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class LedgerValidationError(LedgerError):
    """Bad amount, missing account, role mismatch. Nothing was mutated."""

    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class InvalidStateTransitionError(LedgerError):
    """An entity was asked to move to a state its current state does not allow."""

    status_code = 409

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{target}'",
            {"entity": entity, "current": current, "target": target},
        )
        self.current = current
        self.target = target


class InsufficientBalanceError(LedgerError):
    """Requested debit exceeds the creator's available balance."""

    status_code = 402


class DuplicateProcessingError(LedgerError):
    """An idempotency guard tripped. Callers treat this as a no-op."""

    status_code = 200


class ConcurrencyConflictError(LedgerError):
    """Lock contention or serialization failure. Safe to retry."""

    status_code = 409


class TransactionFailureError(LedgerError):
    """The unit of work failed and was rolled back completely."""

    status_code = 500
