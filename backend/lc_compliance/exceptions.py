"""
Domain Exceptions — raised by services, rendered by a single FastAPI handler.
"""
from typing import Optional, Dict


class ComplianceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, extra: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class ValidationError(ComplianceError):
    """Malformed or incomplete LC terms, or an empty document set."""

    status_code = 400
    error_code = "validation_error"


class NotFoundError(ComplianceError):
    status_code = 404
    error_code = "not_found"


class PaymentRequiredError(ComplianceError):
    """Re-check requested beyond the free allowance without an unused payment."""

    status_code = 402
    error_code = "lc_recheck_payment_required"


class InvalidTransitionError(ComplianceError):
    """Case is not in a state that accepts the requested action."""

    status_code = 409
    error_code = "invalid_transition"


class ChainWriteConflictError(ComplianceError):
    """Audit chain append kept losing the race for the tail; safe to retry later."""

    status_code = 503
    error_code = "chain_write_conflict"


class ConcurrencyConflictError(ComplianceError):
    """Another request changed the same case first; the caller may retry."""

    status_code = 409
    error_code = "concurrent_update"
