from uuid import uuid4

import structlog
from sqlalchemy import delete, insert
from sqlalchemy.engine import Connection

from villa_booking.models.guests import BookingGuest
from villa_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_booking_guest(
    conn: Connection, booking_uid: str, user_uid: str, is_primary: bool = False
) -> str:
    """
    Add a traveller to a booking's roster.

    Raises IntegrityError if the user is already on the roster, or if a second
    primary guest is written.

    Returns:
        str: The new booking_guest_uid.
    """
    booking_guest_uid = uuid4().hex
    conn.execute(
        insert(BookingGuest).values(
            booking_guest_uid=booking_guest_uid,
            booking_uid=booking_uid,
            user_uid=user_uid,
            is_primary=is_primary,
            created_at=utc_now(),
        )
    )
    logger.debug(
        "booking_guest_inserted", booking_uid=booking_uid, user_uid=user_uid, is_primary=is_primary
    )
    return booking_guest_uid


def delete_booking_guest(conn: Connection, booking_uid: str, user_uid: str) -> bool:
    """Remove a non-primary traveller. Returns False if no such row exists."""
    result = conn.execute(
        delete(BookingGuest)
        .where(BookingGuest.booking_uid == booking_uid)
        .where(BookingGuest.user_uid == user_uid)
        .where(BookingGuest.is_primary == False)  # noqa: E712
    )
    return result.rowcount == 1
