"""
Typed errors raised by the booking engine.

Every public engine operation either returns a fully updated entity or raises
one of these errors without having mutated anything. The HTTP layer maps each
class to a status code and a client-facing error code with a single handler.
"""

from __future__ import annotations


class BookingEngineError(Exception):
    """Base class for all booking engine errors."""

    status_code = 500
    code = "internal_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingEngineError):
    """Malformed input the caller can correct (bad range, guest count, stay length)."""

    status_code = 400
    code = "invalid_input"


class NotFoundError(BookingEngineError):
    """Villa, booking or payment does not exist."""

    status_code = 404
    code = "not_found"


class ConflictError(BookingEngineError):
    """Requested dates or review slot already taken. Pick different input."""

    status_code = 409
    code = "conflict"


class PermissionDeniedError(BookingEngineError):
    """Actor is not authorized for this operation."""

    status_code = 403
    code = "forbidden"


class StateError(BookingEngineError):
    """Transition is not valid from the booking's current status."""

    status_code = 409
    code = "invalid_state"


class DependencyError(BookingEngineError):
    """
    Settlement processor failed or timed out.

    The booking is left in its pre-call state; the caller may retry (after
    reconciling, when a payment was left pending).
    """

    status_code = 503
    code = "dependency_unavailable"
    retryable = True


class PaymentDeclinedError(DependencyError):
    """Processor answered and declined the charge. A failed payment record was stored."""

    code = "payment_declined"
