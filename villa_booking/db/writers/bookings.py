from typing import Any

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from villa_booking.models.bookings import Booking
from villa_booking.schemas.bookings import BookingStatus
from villa_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_booking(conn: Connection, row: dict[str, Any]) -> None:
    """
    Insert a new booking into the ledger.

    Args:
        conn (Connection): Connection inside the villa's exclusive section.
        row (dict[str, Any]): Full booking row, including the price snapshot.
    """
    now = utc_now()
    conn.execute(insert(Booking).values(created_at=now, updated_at=now, **row))
    logger.debug("booking_inserted", booking_uid=row["booking_uid"], status=row["status"])


def transition_booking(
    conn: Connection,
    booking_uid: str,
    from_status: BookingStatus,
    to_status: BookingStatus,
    **fields: Any,
) -> bool:
    """
    Move a booking between statuses, only if it is still in from_status.

    The status guard in the WHERE clause makes every transition a
    compare-and-set: a stale caller updates zero rows instead of
    overwriting a newer status.

    Args:
        conn (Connection): Active connection.
        booking_uid (str): Booking ID.
        from_status (BookingStatus): Expected current status.
        to_status (BookingStatus): New status.
        **fields: Extra columns to set in the same statement.

    Returns:
        bool: True if the row was updated.
    """
    result = conn.execute(
        update(Booking)
        .where(Booking.booking_uid == booking_uid)
        .where(Booking.status == from_status.value)
        .values(status=to_status.value, updated_at=utc_now(), **fields)
    )
    return result.rowcount == 1


def mark_review_prompted(conn: Connection, booking_uid: str) -> bool:
    """
    Flip review_prompted from false to true on a completed booking.

    Returns:
        bool: True the one time the flag actually changed.
    """
    result = conn.execute(
        update(Booking)
        .where(Booking.booking_uid == booking_uid)
        .where(Booking.status == BookingStatus.COMPLETED.value)
        .where(Booking.review_prompted == False)  # noqa: E712
        .values(review_prompted=True, updated_at=utc_now())
    )
    return result.rowcount == 1
