from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from villa_booking.models.reviews import Review
from villa_booking.schemas.reviews import ReviewDirection


def get_review(
    conn: Connection, booking_uid: str, direction: ReviewDirection
) -> Optional[dict[str, Any]]:
    """
    Fetch the review left for a booking in one direction.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        booking_uid (str): Booking ID.
        direction (ReviewDirection): guest_on_villa or host_on_guest.

    Returns:
        Optional[dict[str, Any]]: Review row or None if not reviewed yet.
    """
    row = (
        conn.execute(
            select(Review)
            .where(Review.booking_uid == booking_uid)
            .where(Review.direction == direction.value)
        )
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None
