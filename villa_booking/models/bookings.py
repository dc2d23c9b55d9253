# models/bookings.py

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.sql import func

from villa_booking.config import SCHEMA
from villa_booking.models.base import Base


class Booking(Base):
    """
    ORM model for the booking ledger.

    Rows are never deleted; status moves through the ledger state machine and
    cancellation is recorded with cancelled_at/cancellation_reason. Prices are
    a snapshot taken at creation: accommodation_total is the quoted sum of
    nightly rates, price_nightly its per-night average. payout_amount is
    derived from them and only recomputed up to confirmation.
    """

    __tablename__ = "bookings"
    __table_args__ = {"schema": SCHEMA}

    booking_uid = Column(String(64), primary_key=True)
    villa_uid = Column(
        String(64),
        ForeignKey(f"{SCHEMA}.villas.villa_uid", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    guest_uid = Column(String(64), nullable=False, index=True)
    host_uid = Column(String(64), nullable=False, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guest_count = Column(Integer, nullable=False)
    status = Column(String(32), nullable=False, index=True)
    instant_book = Column(Boolean, nullable=False)
    price_nightly = Column(Numeric(12, 2), nullable=False)
    accommodation_total = Column(Numeric(12, 2), nullable=False)
    cleaning_fee = Column(Numeric(12, 2), nullable=False)
    service_fee = Column(Numeric(12, 2), nullable=False)
    tax_fee = Column(Numeric(12, 2), nullable=False)
    payout_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(16), nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    review_prompted = Column(Boolean, nullable=False, server_default=text("false"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
