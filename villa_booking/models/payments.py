"""SQLAlchemy models for booking payments and host payouts."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String, text
from sqlalchemy.sql import func

from villa_booking.config import SCHEMA
from villa_booking.models.base import Base


class BookingPayment(Base):
    """
    ORM model for guest payments against a booking.

    A booking accumulates one row per charge attempt. At most one row per
    booking may be "paid", and at most one may be "pending" (a charge in
    flight or awaiting reconciliation).
    """

    __tablename__ = "booking_payments"
    __table_args__ = (
        Index(
            "uq_booking_payments_one_paid",
            "booking_uid",
            unique=True,
            postgresql_where=text("status = 'paid'"),
            sqlite_where=text("status = 'paid'"),
        ),
        Index(
            "uq_booking_payments_one_pending",
            "booking_uid",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        {"schema": SCHEMA},
    )

    payment_uid = Column(String(64), primary_key=True)
    booking_uid = Column(
        String(64),
        ForeignKey(f"{SCHEMA}.bookings.booking_uid", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    method = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False)  # pending, paid, failed, refunded
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(16), nullable=False)
    transaction_id = Column(String(128), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Payout(Base):
    """
    ORM model for host payouts.

    Created once when a booking is paid, for the booking's payout_amount.
    The transfer itself is performed by the finance service.
    """

    __tablename__ = "payouts"
    __table_args__ = {"schema": SCHEMA}

    payout_uid = Column(String(64), primary_key=True)
    booking_uid = Column(
        String(64),
        ForeignKey(f"{SCHEMA}.bookings.booking_uid", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    host_uid = Column(String(64), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False)  # pending, cancelled
    transfer_method = Column(String(32), nullable=False)
    transfer_reference = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
