from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from villa_booking.config import SCHEMA
from villa_booking.models.base import Base


class Review(Base):
    """
    ORM model for reviews left after a completed stay.

    direction is either guest_on_villa (the guest reviews the villa) or
    host_on_guest (the host reviews the guest). The unique constraint backs
    up the eligibility gate, which refuses a second review per direction.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("booking_uid", "direction", name="uq_reviews_booking_direction"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
        {"schema": SCHEMA},
    )

    review_uid = Column(String(64), primary_key=True)
    booking_uid = Column(
        String(64),
        ForeignKey(f"{SCHEMA}.bookings.booking_uid", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    villa_uid = Column(String(64), nullable=False, index=True)
    direction = Column(String(32), nullable=False)
    author_uid = Column(String(64), nullable=False)
    subject_uid = Column(String(64), nullable=False)
    rating = Column(Integer, nullable=False)
    text = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
