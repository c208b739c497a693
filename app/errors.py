"""
Error taxonomy for the booking and payment core.

Every error carries the HTTP status it maps to, a stable machine-readable
``code`` and, for input problems, the name of the offending ``field``.
Routers never build error responses themselves: the handler registered in
``app.main`` renders any ``BookingPlatformError`` as
``{"error": code, "message": message, "field": field}``.
"""

from typing import Optional


class BookingPlatformError(Exception):
    """Base class for all domain errors"""

    status_code = 400
    code = "error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "field": self.field}


class ValidationError(BookingPlatformError):
    """Bad input shape or values. Never raised after a write has started."""

    status_code = 422
    code = "validation_error"


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"


class InvalidReference(BookingPlatformError):
    """Unknown or inactive catalog item, or an address the customer doesn't own"""

    status_code = 400
    code = "invalid_reference"


class NotFound(BookingPlatformError):
    status_code = 404
    code = "not_found"


class Forbidden(BookingPlatformError):
    status_code = 403
    code = "forbidden"


class Unauthorized(BookingPlatformError):
    status_code = 401
    code = "unauthorized"


class LifecycleError(BookingPlatformError):
    """A booking status rule was violated"""

    status_code = 409
    code = "lifecycle_error"


class InvalidTransition(LifecycleError):
    code = "invalid_transition"


class CancellationWindowExpired(LifecycleError):
    code = "cancellation_window_expired"


class Conflict(BookingPlatformError):
    status_code = 409
    code = "conflict"


class DuplicateReference(Conflict):
    code = "duplicate_reference"


class TransactionConflict(Conflict):
    """A gateway transaction id is already recorded against a different payment"""

    code = "transaction_conflict"


class AmountMismatch(Conflict):
    """Gateway reported a different amount or currency than the payment expects"""

    code = "amount_mismatch"


class AlreadyProcessed(BookingPlatformError):
    """Idempotent no-op: the event was already applied"""

    status_code = 200
    code = "already_processed"


class StorageError(BookingPlatformError):
    """Transient persistence failure. Safe to retry only for idempotent operations."""

    status_code = 503
    code = "storage_error"
