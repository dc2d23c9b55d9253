from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Connection

from villa_booking.models.guests import BookingGuest


def get_booking_guests(conn: Connection, booking_uid: str) -> list[dict[str, Any]]:
    """
    Fetch a booking's guest roster, primary guest first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        booking_uid (str): Booking ID.

    Returns:
        list[dict[str, Any]]: Roster rows.
    """
    result = conn.execute(
        select(BookingGuest)
        .where(BookingGuest.booking_uid == booking_uid)
        .order_by(BookingGuest.is_primary.desc(), BookingGuest.user_uid)
    )
    return [dict(row) for row in result.mappings().fetchall()]
