"""
Booking ledger rules: the status machine, authorization checks and price math.

Nothing here touches the database. Services load rows, ask these helpers whether a
transition is allowed and what it costs, then write the result.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterator, Optional

from villa_booking.config import SERVICE_FEE_PERCENT, TAX_PERCENT
from villa_booking.errors import BookingEngineError, PermissionDeniedError, StateError
from villa_booking.metrics import booking_operations, booking_transitions
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.bookings import BookingStatus

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")

# Allowed status moves. Terminal statuses map to an empty set.
TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.REJECTED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.PAID, BookingStatus.CANCELLED}),
    BookingStatus.PAID: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REJECTED: frozenset(),
}


def ensure_transition(current: BookingStatus | str, target: BookingStatus) -> BookingStatus:
    """
    Validate a status move against the ledger state machine.

    Args:
        current: Booking's current status
        target: Requested status

    Returns:
        BookingStatus: The current status, parsed

    Raises:
        StateError: If target is not reachable from current
    """
    current_status = BookingStatus(current)
    if target not in TRANSITIONS[current_status]:
        raise StateError(
            f"Cannot move booking from {current_status.value} to {target.value}"
        )
    return current_status


def record_transition(from_status: Optional[BookingStatus], to_status: BookingStatus) -> None:
    booking_transitions.labels(
        from_status=from_status.value if from_status else "none", to_status=to_status.value
    ).inc()


@contextmanager
def track_operation(operation: str) -> Iterator[None]:
    """Count an engine operation by outcome: success, or the error code it raised."""
    try:
        yield
    except BookingEngineError as e:
        booking_operations.labels(operation=operation, outcome=e.code).inc()
        raise
    booking_operations.labels(operation=operation, outcome="success").inc()


# =============================================================================
# Authorization
# =============================================================================


def is_guest(actor: Actor, booking: dict[str, Any]) -> bool:
    return actor.user_uid == booking["guest_uid"]


def is_host(actor: Actor, booking: dict[str, Any]) -> bool:
    return actor.user_uid == booking["host_uid"]


def require_host(actor: Actor, booking: dict[str, Any], action: str) -> None:
    """Only the villa's host may approve or reject. Admins are not hosts."""
    if not is_host(actor, booking):
        raise PermissionDeniedError(f"Only the villa's host can {action} this booking")


def require_guest(actor: Actor, booking: dict[str, Any], action: str) -> None:
    if not is_guest(actor, booking):
        raise PermissionDeniedError(f"Only the guest can {action} this booking")


def require_party_or_admin(actor: Actor, booking: dict[str, Any], action: str) -> None:
    if not (is_guest(actor, booking) or is_host(actor, booking) or actor.is_admin):
        raise PermissionDeniedError(f"You are not allowed to {action} this booking")


def require_villa_manager(actor: Actor, villa: dict[str, Any]) -> None:
    """Host of the villa or an admin may manage its calendar and pricing."""
    if not (actor.user_uid == villa["host_uid"] or actor.is_admin):
        raise PermissionDeniedError("Only the villa's host or an admin can manage this villa")


# =============================================================================
# Price math
# =============================================================================


def _percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return (amount * percent / HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Charges:
    """Price snapshot stored on a booking at creation."""

    price_nightly: Decimal
    accommodation_total: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    tax_fee: Decimal
    payout_amount: Decimal

    @property
    def guest_total(self) -> Decimal:
        return self.accommodation_total + self.cleaning_fee + self.tax_fee


def compute_payout(
    accommodation_total: Decimal, cleaning_fee: Decimal, service_fee: Decimal
) -> Decimal:
    """Host payout: stay plus cleaning, minus the platform's service fee."""
    return (Decimal(accommodation_total) + Decimal(cleaning_fee) - Decimal(service_fee)).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )


def compute_charges(
    accommodation_total: Decimal,
    cleaning_fee: Decimal,
    nights: int,
    service_fee_percent: Decimal = SERVICE_FEE_PERCENT,
    tax_percent: Decimal = TAX_PERCENT,
) -> Charges:
    """
    Derive every fee from the quoted accommodation total.

    Args:
        accommodation_total: Sum of nightly rates from the quote
        cleaning_fee: Villa's flat cleaning fee
        nights: Number of nights (> 0)
        service_fee_percent: Platform take, as a percentage of accommodation
        tax_percent: Tax, as a percentage of accommodation plus cleaning

    Returns:
        Charges: Rounded to cents

    Example:
        >>> c = compute_charges(Decimal("1400"), Decimal("100"), 4, Decimal("10"), Decimal("0"))
        >>> c.payout_amount
        Decimal('1360.00')
    """
    accommodation_total = Decimal(accommodation_total).quantize(CENTS, rounding=ROUND_HALF_UP)
    cleaning_fee = Decimal(cleaning_fee).quantize(CENTS, rounding=ROUND_HALF_UP)
    service_fee = _percent_of(accommodation_total, service_fee_percent)
    tax_fee = _percent_of(accommodation_total + cleaning_fee, tax_percent)

    return Charges(
        price_nightly=(accommodation_total / nights).quantize(CENTS, rounding=ROUND_HALF_UP),
        accommodation_total=accommodation_total,
        cleaning_fee=cleaning_fee,
        service_fee=service_fee,
        tax_fee=tax_fee,
        payout_amount=compute_payout(accommodation_total, cleaning_fee, service_fee),
    )


def guest_total(booking: dict[str, Any]) -> Decimal:
    """Amount charged to the guest for a stored booking row."""
    return (
        Decimal(booking["accommodation_total"])
        + Decimal(booking["cleaning_fee"])
        + Decimal(booking["tax_fee"])
    ).quantize(CENTS, rounding=ROUND_HALF_UP)
