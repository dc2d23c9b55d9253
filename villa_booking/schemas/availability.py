from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CalendarSource(str, Enum):
    MANUAL = "manual"
    SYNC = "sync"
    BOOKING = "booking"


class NightlyRate(BaseModel):
    date: date
    rate: Decimal
    rule_id: Optional[int] = Field(None, description="Pricing rule applied, None for the base rate")


class Quote(BaseModel):
    villa_uid: str
    check_in: date
    check_out: date
    currency: str
    nights: list[NightlyRate]
    total: Decimal = Field(..., description="Sum of nightly rates, before fees")


class AvailabilityQuote(Quote):
    available: bool
    cleaning_fee: Decimal


class PricingRuleCreatePayload(BaseModel):
    start_date: date
    end_date: date
    nightly_rate: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class PricingRuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rule_id: int
    villa_uid: str
    start_date: date
    end_date: date
    nightly_rate: Decimal
    notes: Optional[str] = None


class CalendarOverridePayload(BaseModel):
    """Manual block/unblock by a host, or an external calendar sync."""

    start_date: date
    end_date: date = Field(..., description="Exclusive end of the range")
    is_available: bool
    source: CalendarSource = CalendarSource.MANUAL


class CalendarEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: date
    is_available: bool
    source: CalendarSource
    booking_uid: Optional[str] = None
