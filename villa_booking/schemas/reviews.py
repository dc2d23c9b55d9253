from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewDirection(str, Enum):
    GUEST_ON_VILLA = "guest_on_villa"
    HOST_ON_GUEST = "host_on_guest"


class ReviewCreatePayload(BaseModel):
    direction: ReviewDirection
    rating: int = Field(..., ge=1, le=5)
    text: Optional[str] = Field(None, max_length=5000)


class ReviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    review_uid: str
    booking_uid: str
    villa_uid: str
    direction: ReviewDirection
    author_uid: str
    subject_uid: str
    rating: int
    text: Optional[str] = None
    created_at: datetime


class ReviewEligibility(BaseModel):
    booking_uid: str
    direction: ReviewDirection
    eligible: bool
    reason: Optional[str] = Field(None, description="Why the review is not allowed")
