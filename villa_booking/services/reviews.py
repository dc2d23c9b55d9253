"""
Review eligibility gate.

A booking can be reviewed once per direction, and only after it is
completed: the guest reviews the villa (guest_on_villa) and the host reviews
the guest (host_on_guest).
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from villa_booking.db.readers.bookings import get_booking
from villa_booking.db.readers.reviews import get_review
from villa_booking.db.writers.reviews import insert_review
from villa_booking.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StateError,
)
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.bookings import BookingStatus
from villa_booking.schemas.reviews import (
    ReviewCreatePayload,
    ReviewDirection,
    ReviewEligibility,
    ReviewRead,
)
from villa_booking.services.bookings import booking_section
from villa_booking.services.coordinator import VillaLockRegistry
from villa_booking.services.ledger import require_party_or_admin, track_operation

logger = structlog.get_logger(__name__)

ALREADY_REVIEWED = "You have already left a review for this booking"


def _author_uid(booking: dict[str, Any], direction: ReviewDirection) -> str:
    if direction == ReviewDirection.GUEST_ON_VILLA:
        return str(booking["guest_uid"])
    return str(booking["host_uid"])


def _subject_uid(booking: dict[str, Any], direction: ReviewDirection) -> str:
    if direction == ReviewDirection.GUEST_ON_VILLA:
        return str(booking["villa_uid"])
    return str(booking["guest_uid"])


def _check_review(
    booking: dict[str, Any],
    direction: ReviewDirection,
    existing: Optional[dict[str, Any]],
    actor: Optional[Actor],
) -> None:
    """
    Raise the error that blocks this review, if any.

    Raises:
        StateError: Booking is not completed.
        PermissionDeniedError: Actor is not the author for this direction.
        ConflictError: Direction already reviewed.
    """
    if booking["status"] != BookingStatus.COMPLETED.value:
        raise StateError("Reviews are only allowed after the stay is completed")
    if actor is not None and actor.user_uid != _author_uid(booking, direction):
        who = "guest" if direction == ReviewDirection.GUEST_ON_VILLA else "host"
        raise PermissionDeniedError(f"Only the booking's {who} can leave this review")
    if existing is not None:
        raise ConflictError(ALREADY_REVIEWED)


def review_eligibility(
    engine: Engine,
    booking_uid: str,
    direction: ReviewDirection,
    actor: Optional[Actor] = None,
) -> ReviewEligibility:
    """
    Report whether a review may be left, and why not if it may not.

    Args:
        engine (Engine): SQLAlchemy engine.
        booking_uid (str): Booking ID.
        direction (ReviewDirection): guest_on_villa or host_on_guest.
        actor (Optional[Actor]): When given, the actor must be a party to the booking or an
            admin, and eligibility also checks the actor is the author.

    Returns:
        ReviewEligibility: eligible flag plus reason.

    Raises:
        NotFoundError: Booking does not exist.
        PermissionDeniedError: Actor is neither party nor admin.
    """
    with engine.connect() as conn:
        booking = get_booking(conn, booking_uid)
        if booking is None:
            raise NotFoundError(f"Booking {booking_uid} not found")
        if actor is not None:
            require_party_or_admin(actor, booking, "view reviews for")
        existing = get_review(conn, booking_uid, direction)

    try:
        _check_review(booking, direction, existing, actor)
    except (StateError, PermissionDeniedError, ConflictError) as e:
        return ReviewEligibility(
            booking_uid=booking_uid, direction=direction, eligible=False, reason=e.message
        )

    return ReviewEligibility(booking_uid=booking_uid, direction=direction, eligible=True)


def can_review(engine: Engine, booking_uid: str, direction: ReviewDirection) -> bool:
    return review_eligibility(engine, booking_uid, direction).eligible


def record_review(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    payload: ReviewCreatePayload,
    registry: Optional[VillaLockRegistry] = None,
) -> ReviewRead:
    """
    Store a review. A second review in the same direction is refused, never overwritten.

    Args:
        engine (Engine): SQLAlchemy engine.
        actor (Actor): Guest (guest_on_villa) or host (host_on_guest) of the booking.
        booking_uid (str): Completed booking.
        payload (ReviewCreatePayload): Direction, rating and text.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Returns:
        ReviewRead: The stored review.

    Raises:
        NotFoundError: Booking does not exist.
        StateError: Booking is not completed.
        PermissionDeniedError: Actor is not the author for this direction.
        ConflictError: Direction already reviewed.
    """
    with track_operation("review"):
        try:
            with booking_section(engine, booking_uid, registry) as (conn, booking):
                existing = get_review(conn, booking_uid, payload.direction)
                _check_review(booking, payload.direction, existing, actor)

                insert_review(
                    conn,
                    booking_uid=booking_uid,
                    villa_uid=booking["villa_uid"],
                    direction=payload.direction,
                    author_uid=actor.user_uid,
                    subject_uid=_subject_uid(booking, payload.direction),
                    rating=payload.rating,
                    text=payload.text,
                )
                review = get_review(conn, booking_uid, payload.direction)
        except IntegrityError as e:
            # Unique (booking_uid, direction) caught a concurrent writer
            raise ConflictError(ALREADY_REVIEWED) from e

    logger.info(
        "review_recorded",
        booking_uid=booking_uid,
        direction=payload.direction.value,
        author_uid=actor.user_uid,
        rating=payload.rating,
    )
    return ReviewRead.model_validate(review)
