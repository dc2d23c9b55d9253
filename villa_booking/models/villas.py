"""SQLAlchemy model for villa records read by the booking engine."""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, text
from sqlalchemy.sql import func

from villa_booking.config import DEFAULT_CURRENCY, SCHEMA
from villa_booking.models.base import Base


class Villa(Base):
    """
    ORM model for villas.

    Villa listings are created and moderated by the listings service; the
    booking engine only reads them. status must be "live" for a villa to be
    bookable, and the row doubles as the database-level lock target for
    per-villa serialization (SELECT ... FOR UPDATE).
    """

    __tablename__ = "villas"
    __table_args__ = {"schema": SCHEMA}

    villa_uid = Column(String(64), primary_key=True)
    host_uid = Column(String(64), nullable=False, index=True)
    status = Column(String(32), nullable=False)
    name = Column(String(255), nullable=False, server_default="")
    guest_count = Column(Integer, nullable=False)
    min_stay_nights = Column(Integer, nullable=False, server_default="1")
    max_stay_nights = Column(Integer, nullable=False)
    instant_book = Column(Boolean, nullable=False, server_default=text("false"))
    nightly_rate = Column(Numeric(12, 2), nullable=False)
    cleaning_fee = Column(Numeric(12, 2), nullable=False, server_default="0")
    currency = Column(String(16), nullable=False, server_default=DEFAULT_CURRENCY)
    is_deleted = Column(Boolean, nullable=False, server_default=text("false"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
