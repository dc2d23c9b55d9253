"""
Booking guest roster.

The booking's guest is the primary roster entry, created with the booking.
The guest (or an admin) may add travellers by user_uid while the stay is
still active, never more than the booking's guest_count.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from villa_booking.db.readers.guests import get_booking_guests
from villa_booking.db.writers.guests import delete_booking_guest, insert_booking_guest
from villa_booking.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StateError,
    ValidationError,
)
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.bookings import BookingGuestRead
from villa_booking.services.availability import ACTIVE_STATUSES
from villa_booking.services.bookings import booking_section, get_booking
from villa_booking.services.coordinator import VillaLockRegistry
from villa_booking.services.ledger import is_guest, track_operation

logger = structlog.get_logger(__name__)

ALREADY_ON_ROSTER = "User is already a guest on this booking"


def _check_roster_change(actor: Actor, booking: dict[str, Any]) -> None:
    if not (is_guest(actor, booking) or actor.is_admin):
        raise PermissionDeniedError("Only the booking's guest can change its guest list")
    if booking["status"] not in {s.value for s in ACTIVE_STATUSES}:
        raise StateError(f"Guest list cannot change on a {booking['status']} booking")


def list_booking_guests(engine: Engine, actor: Actor, booking_uid: str) -> list[BookingGuestRead]:
    """List the roster of a booking visible to the actor, primary guest first."""
    get_booking(engine, actor, booking_uid)
    with engine.connect() as conn:
        rows = get_booking_guests(conn, booking_uid)
    return [BookingGuestRead.model_validate(row) for row in rows]


def add_booking_guest(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    user_uid: str,
    registry: Optional[VillaLockRegistry] = None,
) -> list[BookingGuestRead]:
    """
    Add a traveller to a booking.

    Args:
        engine (Engine): SQLAlchemy engine.
        actor (Actor): The booking's guest or an admin.
        booking_uid (str): Pending, confirmed or paid booking.
        user_uid (str): Traveller to add.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Returns:
        list[BookingGuestRead]: The roster after the change.

    Raises:
        PermissionDeniedError: Actor is neither the guest nor an admin.
        StateError: Booking is no longer active.
        ValidationError: Roster already holds guest_count travellers.
        ConflictError: User is already on the roster.
    """
    with track_operation("add_guest"):
        try:
            with booking_section(engine, booking_uid, registry) as (conn, booking):
                _check_roster_change(actor, booking)

                roster = get_booking_guests(conn, booking_uid)
                if any(g["user_uid"] == user_uid for g in roster):
                    raise ConflictError(ALREADY_ON_ROSTER)
                if len(roster) >= booking["guest_count"]:
                    raise ValidationError(
                        f"Booking is for {booking['guest_count']} guests; the guest list is full"
                    )

                insert_booking_guest(conn, booking_uid, user_uid)
                rows = get_booking_guests(conn, booking_uid)
        except IntegrityError as e:
            raise ConflictError(ALREADY_ON_ROSTER) from e

    logger.info("booking_guest_added", booking_uid=booking_uid, user_uid=user_uid)
    return [BookingGuestRead.model_validate(row) for row in rows]


def remove_booking_guest(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    user_uid: str,
    registry: Optional[VillaLockRegistry] = None,
) -> list[BookingGuestRead]:
    """
    Remove a traveller from a booking. The primary guest cannot be removed.

    Raises:
        PermissionDeniedError: Actor is neither the guest nor an admin.
        StateError: Booking is no longer active.
        ValidationError: user_uid is the primary guest.
        NotFoundError: user_uid is not on the roster.
    """
    with track_operation("remove_guest"):
        with booking_section(engine, booking_uid, registry) as (conn, booking):
            _check_roster_change(actor, booking)

            if user_uid == booking["guest_uid"]:
                raise ValidationError("The primary guest cannot be removed from a booking")
            if not delete_booking_guest(conn, booking_uid, user_uid):
                raise NotFoundError(f"User {user_uid} is not a guest on this booking")
            rows = get_booking_guests(conn, booking_uid)

    logger.info("booking_guest_removed", booking_uid=booking_uid, user_uid=user_uid)
    return [BookingGuestRead.model_validate(row) for row in rows]
