import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from villa_booking.dependencies import get_current_actor, get_db_engine
from villa_booking.errors import BookingEngineError
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.reviews import (
    ReviewCreatePayload,
    ReviewDirection,
    ReviewEligibility,
    ReviewRead,
)
from villa_booking.services.reviews import record_review, review_eligibility

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/bookings/{booking_uid}/reviews/eligibility", response_model=ReviewEligibility)
def get_review_eligibility(
    booking_uid: str,
    direction: ReviewDirection = Query(...),
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> ReviewEligibility:
    """Tell the caller whether they may review this booking in the given direction."""
    return review_eligibility(engine, booking_uid, direction, actor=actor)


@router.post(
    "/bookings/{booking_uid}/reviews",
    response_model=ReviewRead,
    status_code=status.HTTP_201_CREATED,
)
def create_review(
    booking_uid: str,
    payload: ReviewCreatePayload,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> ReviewRead:
    """
    Leave a review on a completed booking.

    The guest reviews the villa (guest_on_villa) and the host reviews the guest
    (host_on_guest), once each.
    """
    try:
        return record_review(engine, actor, booking_uid, payload)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("review_creation_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
