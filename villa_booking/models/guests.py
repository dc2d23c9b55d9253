from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.sql import func

from villa_booking.config import SCHEMA
from villa_booking.models.base import Base


class BookingGuest(Base):
    """
    ORM model for the guest roster of a booking.

    The booking's guest is the single primary row, written with the booking.
    Additional travellers are added by user_uid, up to the booking's
    guest_count.
    """

    __tablename__ = "booking_guests"
    __table_args__ = (
        UniqueConstraint("booking_uid", "user_uid", name="uq_booking_guests_booking_user"),
        Index(
            "uq_booking_guests_one_primary",
            "booking_uid",
            unique=True,
            postgresql_where=text("is_primary"),
            sqlite_where=text("is_primary = 1"),
        ),
        {"schema": SCHEMA},
    )

    booking_guest_uid = Column(String(64), primary_key=True)
    booking_uid = Column(
        String(64),
        ForeignKey(f"{SCHEMA}.bookings.booking_uid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_uid = Column(String(64), nullable=False, index=True)
    is_primary = Column(Boolean, nullable=False, server_default=text("false"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
