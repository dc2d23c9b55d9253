from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from villa_booking.config import SCHEMA
from villa_booking.models.base import Base


class VillaPricingRule(Base):
    """
    ORM model for date-range nightly rate overrides.

    Covers the half-open range [start_date, end_date). rule_id increases with
    creation order and breaks ties between rules of equal span.
    """

    __tablename__ = "villa_pricing_rules"
    __table_args__ = {"schema": SCHEMA}

    rule_id = Column(Integer, primary_key=True, autoincrement=True)
    villa_uid = Column(
        String(64),
        ForeignKey(f"{SCHEMA}.villas.villa_uid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    nightly_rate = Column(Numeric(12, 2), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
