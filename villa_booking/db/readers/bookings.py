from datetime import date
from typing import Any, Optional

from sqlalchemy import asc, desc, select
from sqlalchemy.engine import Connection

from villa_booking.models.bookings import Booking
from villa_booking.schemas.bookings import BookingSearchParams, BookingStatus


def get_booking(
    conn: Connection, booking_uid: str, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a single booking.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        booking_uid (str): Booking ID.
        for_update (bool): Take a row lock held until the transaction ends.

    Returns:
        Optional[dict[str, Any]]: Booking columns or None if not found.
    """
    stmt = select(Booking).where(Booking.booking_uid == booking_uid)
    if for_update:
        stmt = stmt.with_for_update()

    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def get_booking_villa_uid(conn: Connection, booking_uid: str) -> Optional[str]:
    """
    Look up which villa a booking belongs to.

    villa_uid never changes after creation, so this read is safe outside the
    villa's exclusive section and is used to pick which section to enter.
    """
    result = conn.execute(select(Booking.villa_uid).where(Booking.booking_uid == booking_uid))
    row = result.fetchone()
    return row[0] if row else None


def search_bookings(
    conn: Connection,
    params: BookingSearchParams,
    visible_to_guest: Optional[str] = None,
    visible_to_host: Optional[str] = None,
) -> list[dict[str, Any]]:
    """
    Search bookings with optional filters, sorting and pagination.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        params (BookingSearchParams): Filters, sort and page.
        visible_to_guest (Optional[str]): Restrict to bookings made by this guest.
        visible_to_host (Optional[str]): Restrict to bookings hosted by this host.

    Returns:
        list[dict[str, Any]]: Matching booking rows.
    """
    stmt = select(Booking)

    if visible_to_guest is not None:
        stmt = stmt.where(Booking.guest_uid == visible_to_guest)
    if visible_to_host is not None:
        stmt = stmt.where(Booking.host_uid == visible_to_host)

    if params.villa_uid:
        stmt = stmt.where(Booking.villa_uid == params.villa_uid)
    if params.guest_uid:
        stmt = stmt.where(Booking.guest_uid == params.guest_uid)
    if params.host_uid:
        stmt = stmt.where(Booking.host_uid == params.host_uid)
    if params.status:
        stmt = stmt.where(Booking.status == params.status.value)
    if params.instant_book is not None:
        stmt = stmt.where(Booking.instant_book == params.instant_book)
    if params.date_from:
        stmt = stmt.where(Booking.check_out > params.date_from)
    if params.date_to:
        stmt = stmt.where(Booking.check_in < params.date_to)

    sort_column = getattr(Booking, params.sort_by)
    order = desc if params.sort_order == "desc" else asc
    stmt = stmt.order_by(order(sort_column), Booking.booking_uid)
    stmt = stmt.limit(params.limit).offset(params.offset)

    return [dict(row) for row in conn.execute(stmt).mappings().fetchall()]


def get_bookings_due_for_completion(conn: Connection, today: date) -> list[tuple[str, str]]:
    """
    List paid bookings whose check-out date has been reached.

    Returns:
        list[tuple[str, str]]: (booking_uid, villa_uid) pairs, oldest check-out first.
    """
    result = conn.execute(
        select(Booking.booking_uid, Booking.villa_uid)
        .where(Booking.status == BookingStatus.PAID.value)
        .where(Booking.check_out <= today)
        .order_by(Booking.check_out, Booking.booking_uid)
    )
    return [(row[0], row[1]) for row in result.fetchall()]


def get_bookings_awaiting_review_prompt(conn: Connection) -> list[str]:
    """List completed bookings whose guest has not been prompted to review yet."""
    result = conn.execute(
        select(Booking.booking_uid)
        .where(Booking.status == BookingStatus.COMPLETED.value)
        .where(Booking.review_prompted == False)  # noqa: E712
        .order_by(Booking.booking_uid)
    )
    return list(result.scalars().all())
