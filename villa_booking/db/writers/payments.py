from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from villa_booking.models.payments import BookingPayment, Payout
from villa_booking.schemas.bookings import PaymentStatus
from villa_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

PAYOUT_PENDING = "pending"
PAYOUT_CANCELLED = "cancelled"


def insert_pending_payment(
    conn: Connection, booking_uid: str, method: str, total_amount: Decimal, currency: str
) -> str:
    """
    Record a charge attempt before the processor is called.

    Args:
        conn (Connection): Connection inside the villa's exclusive section.
        booking_uid (str): Booking being paid.
        method (str): Payment method requested by the guest.
        total_amount (Decimal): Amount that will be charged.
        currency (str): ISO currency code.

    Returns:
        str: The new payment_uid.
    """
    payment_uid = uuid4().hex
    now = utc_now()
    conn.execute(
        insert(BookingPayment).values(
            payment_uid=payment_uid,
            booking_uid=booking_uid,
            method=method,
            status=PaymentStatus.PENDING.value,
            total_amount=total_amount,
            currency=currency,
            created_at=now,
            updated_at=now,
        )
    )
    return payment_uid


def _set_payment_status(
    conn: Connection,
    payment_uid: str,
    expected: PaymentStatus,
    new_status: PaymentStatus,
    **fields: object,
) -> bool:
    result = conn.execute(
        update(BookingPayment)
        .where(BookingPayment.payment_uid == payment_uid)
        .where(BookingPayment.status == expected.value)
        .values(status=new_status.value, updated_at=utc_now(), **fields)
    )
    return result.rowcount == 1


def mark_payment_paid(
    conn: Connection, payment_uid: str, transaction_id: Optional[str], paid_at: datetime
) -> bool:
    """
    Settle a pending payment as paid.

    Returns:
        bool: False if the record was no longer pending (already settled elsewhere).
    """
    return _set_payment_status(
        conn,
        payment_uid,
        PaymentStatus.PENDING,
        PaymentStatus.PAID,
        transaction_id=transaction_id,
        paid_at=paid_at,
    )


def mark_payment_failed(conn: Connection, payment_uid: str, transaction_id: Optional[str]) -> bool:
    """Settle a pending payment as failed. Returns False if it was no longer pending."""
    return _set_payment_status(
        conn,
        payment_uid,
        PaymentStatus.PENDING,
        PaymentStatus.FAILED,
        transaction_id=transaction_id,
    )


def mark_payment_refunded(conn: Connection, payment_uid: str, refunded_at: datetime) -> bool:
    return _set_payment_status(
        conn, payment_uid, PaymentStatus.PAID, PaymentStatus.REFUNDED, refunded_at=refunded_at
    )


def insert_payout(
    conn: Connection, booking_uid: str, host_uid: str, amount: Decimal, transfer_method: str
) -> str:
    """
    Create the host payout for a paid booking.

    Args:
        conn (Connection): Active connection.
        booking_uid (str): Paid booking.
        host_uid (str): Host receiving the payout.
        amount (Decimal): The booking's payout_amount.
        transfer_method (str): How finance will transfer the money.

    Returns:
        str: The new payout_uid.
    """
    payout_uid = uuid4().hex
    now = utc_now()
    conn.execute(
        insert(Payout).values(
            payout_uid=payout_uid,
            booking_uid=booking_uid,
            host_uid=host_uid,
            amount=amount,
            status=PAYOUT_PENDING,
            transfer_method=transfer_method,
            created_at=now,
            updated_at=now,
        )
    )
    logger.info("payout_created", booking_uid=booking_uid, host_uid=host_uid, amount=str(amount))
    return payout_uid


def cancel_payout(conn: Connection, booking_uid: str) -> bool:
    """Cancel a booking's pending payout. Returns False if there was none."""
    result = conn.execute(
        update(Payout)
        .where(Payout.booking_uid == booking_uid)
        .where(Payout.status == PAYOUT_PENDING)
        .values(status=PAYOUT_CANCELLED, updated_at=utc_now())
    )
    return result.rowcount == 1
