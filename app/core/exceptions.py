# app/core/exceptions.py
"""
Application error taxonomy.

Services raise these; the handlers registered in `app.main` turn them into
`{"detail": ..., "field": ...}` JSON responses with the matching status code.
"""
from typing import Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Could not validate credentials"


class AuthorizationError(AppError):
    # One message for every denial so callers cannot tell which check failed.
    status_code = 403
    default_message = "Not authorized to access this registration"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict with current state"


class InsufficientInventoryError(ConflictError):
    default_message = "Not enough tickets remaining"


class TicketNotOnSaleError(ConflictError):
    default_message = "Ticket type is not on sale"


class EventCapacityError(ConflictError):
    default_message = "This event has reached its maximum capacity"


class PaymentAlreadySettledError(ConflictError):
    default_message = "Payment for this registration has already been settled"


class ExternalServiceError(AppError):
    status_code = 502
    default_message = "Payment service temporarily unavailable"


class WebhookSignatureError(Exception):
    """Raised when a webhook payload cannot be authenticated."""
