"""SQLAlchemy model for per-villa, per-date availability entries."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.sql import func

from villa_booking.config import SCHEMA
from villa_booking.models.base import Base


class VillaCalendarEntry(Base):
    """
    ORM model for the villa availability calendar.

    One row per villa per date. A missing row means the date is assumed
    available. Rows with source="booking" are holds written by the ledger:
    booking_uid names the holding booking and held_from_source records what
    the row looked like before the hold (NULL when there was no row), so
    releasing the hold puts the calendar back exactly as it was.
    """

    __tablename__ = "villa_calendar"
    __table_args__ = (
        UniqueConstraint("villa_uid", "date", name="uq_villa_calendar_villa_date"),
        {"schema": SCHEMA},
    )

    villa_calendar_uid = Column(String(64), primary_key=True)
    villa_uid = Column(
        String(64),
        ForeignKey(f"{SCHEMA}.villas.villa_uid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False)
    source = Column(String(32), nullable=False)  # manual, sync, booking
    booking_uid = Column(String(64), nullable=True, index=True)
    held_from_source = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
