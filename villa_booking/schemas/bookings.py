from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class BookingCreatePayload(BaseModel):
    """
    Schema for requesting a stay. Prices, host and status are derived by the
    engine and are never accepted from the caller.
    """

    villa_uid: str = Field(..., min_length=1, description="Villa to book")
    check_in: date = Field(..., description="First night of the stay")
    check_out: date = Field(..., description="Departure date (not a night of the stay)")
    guest_count: int = Field(..., description="Number of guests")


class BookingCancelPayload(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000, description="Why the booking is cancelled")


class BookingPayPayload(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=32, description="e.g. card, stripe")


class BookingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_uid: str
    villa_uid: str
    guest_uid: str
    host_uid: str
    check_in: date
    check_out: date
    guest_count: int
    status: BookingStatus
    instant_book: bool
    price_nightly: Decimal
    accommodation_total: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    tax_fee: Decimal
    payout_amount: Decimal
    currency: str
    created_at: datetime
    updated_at: datetime
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    review_prompted: bool

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    @property
    def guest_total(self) -> Decimal:
        """Amount charged to the guest: stay, cleaning and taxes."""
        return self.accommodation_total + self.cleaning_fee + self.tax_fee


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_uid: str
    booking_uid: str
    method: str
    status: PaymentStatus
    total_amount: Decimal
    currency: str
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None


class PaymentOutcome(BaseModel):
    """Result of pay_booking / reconcile_payment: the booking and the payment it produced."""

    booking: BookingRead
    payment: PaymentRead


class BookingSearchParams(BaseModel):
    villa_uid: Optional[str] = None
    guest_uid: Optional[str] = None
    host_uid: Optional[str] = None
    status: Optional[BookingStatus] = None
    instant_book: Optional[bool] = None
    date_from: Optional[date] = Field(None, description="Only stays ending after this date")
    date_to: Optional[date] = Field(None, description="Only stays starting before this date")
    limit: int = Field(10, gt=0, le=100)
    offset: int = Field(0, ge=0)
    sort_by: Literal["created_at", "check_in", "check_out"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class PaymentSearchParams(BaseModel):
    payment_status: Optional[PaymentStatus] = None
    limit: int = Field(10, gt=0, le=100)
    offset: int = Field(0, ge=0)
    sort_by: Literal["paid_at", "refunded_at"] = "paid_at"
    sort_order: Literal["asc", "desc"] = "desc"


class BookingGuestCreatePayload(BaseModel):
    user_uid: str = Field(..., min_length=1, max_length=64, description="Traveller to add")


class BookingGuestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_guest_uid: str
    booking_uid: str
    user_uid: str
    is_primary: bool
    created_at: datetime
