from typing import Any, Optional

from sqlalchemy import asc, desc, select
from sqlalchemy.engine import Connection

from villa_booking.models.payments import BookingPayment, Payout
from villa_booking.schemas.bookings import PaymentSearchParams, PaymentStatus


def get_payments(conn: Connection, booking_uid: str) -> list[dict[str, Any]]:
    """
    Fetch every payment attempt for a booking, oldest first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        booking_uid (str): Booking ID.

    Returns:
        list[dict[str, Any]]: Payment rows.
    """
    result = conn.execute(
        select(BookingPayment)
        .where(BookingPayment.booking_uid == booking_uid)
        .order_by(BookingPayment.created_at, BookingPayment.payment_uid)
    )
    return [dict(row) for row in result.mappings().fetchall()]


def search_payments(
    conn: Connection, booking_uid: str, params: PaymentSearchParams
) -> list[dict[str, Any]]:
    """
    Search a booking's payments by status, sorted by settlement or refund time.

    Payments without the sort timestamp (pending, failed) come last in both
    directions.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        booking_uid (str): Booking ID.
        params (PaymentSearchParams): Status filter, sort and page.

    Returns:
        list[dict[str, Any]]: Matching payment rows.
    """
    stmt = select(BookingPayment).where(BookingPayment.booking_uid == booking_uid)
    if params.payment_status is not None:
        stmt = stmt.where(BookingPayment.status == params.payment_status.value)

    sort_column = getattr(BookingPayment, params.sort_by)
    order = desc if params.sort_order == "desc" else asc
    stmt = stmt.order_by(
        sort_column.is_(None),
        order(sort_column),
        BookingPayment.created_at,
        BookingPayment.payment_uid,
    )
    stmt = stmt.limit(params.limit).offset(params.offset)

    return [dict(row) for row in conn.execute(stmt).mappings().fetchall()]


def get_payment_by_status(
    conn: Connection, booking_uid: str, status: PaymentStatus
) -> Optional[dict[str, Any]]:
    """Fetch the booking's payment in the given status, if any."""
    row = (
        conn.execute(
            select(BookingPayment)
            .where(BookingPayment.booking_uid == booking_uid)
            .where(BookingPayment.status == status.value)
        )
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def get_payment(conn: Connection, payment_uid: str) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(BookingPayment).where(BookingPayment.payment_uid == payment_uid))
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def get_payout(conn: Connection, booking_uid: str) -> Optional[dict[str, Any]]:
    stmt = select(Payout).where(Payout.booking_uid == booking_uid)
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None
