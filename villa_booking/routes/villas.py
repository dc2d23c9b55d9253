from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from villa_booking.dependencies import get_current_actor, get_db_engine
from villa_booking.errors import BookingEngineError
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.availability import (
    AvailabilityQuote,
    CalendarEntryRead,
    CalendarOverridePayload,
    PricingRuleCreatePayload,
    PricingRuleRead,
)
from villa_booking.services.availability import quote_availability
from villa_booking.services.calendar import (
    add_pricing_rule,
    list_pricing_rules,
    read_calendar,
    set_calendar_availability,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/villas/{villa_uid}/availability", response_model=AvailabilityQuote)
def get_availability(
    villa_uid: str,
    check_in: date = Query(..., description="First night"),
    check_out: date = Query(..., description="Departure date"),
    engine: Engine = Depends(get_db_engine),
) -> AvailabilityQuote:
    """
    Quote a prospective stay: nightly breakdown, total and whether the dates are free.

    The answer is not a reservation; the dates are re-checked when booking.
    """
    return quote_availability(engine, villa_uid, check_in, check_out)


@router.get("/villas/{villa_uid}/pricing-rules", response_model=list[PricingRuleRead])
def get_pricing_rules(
    villa_uid: str, engine: Engine = Depends(get_db_engine)
) -> list[PricingRuleRead]:
    return list_pricing_rules(engine, villa_uid)


@router.post(
    "/villas/{villa_uid}/pricing-rules",
    response_model=PricingRuleRead,
    status_code=status.HTTP_201_CREATED,
)
def create_pricing_rule(
    villa_uid: str,
    payload: PricingRuleCreatePayload,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> PricingRuleRead:
    """
    Add a nightly rate override for a date range (villa host or admin).

    Args:
        villa_uid: Villa ID
        payload: start_date, end_date (exclusive), nightly_rate, notes
        actor: Authenticated caller
        engine: SQLAlchemy engine

    Returns:
        PricingRuleRead: The stored rule
    """
    try:
        return add_pricing_rule(engine, actor, villa_uid, payload)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("pricing_rule_creation_failed", villa_uid=villa_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/villas/{villa_uid}/calendar", response_model=list[CalendarEntryRead])
def get_calendar(
    villa_uid: str,
    start: date = Query(...),
    end: date = Query(..., description="Exclusive end date"),
    engine: Engine = Depends(get_db_engine),
) -> list[CalendarEntryRead]:
    return read_calendar(engine, villa_uid, start, end)


@router.put("/villas/{villa_uid}/calendar", response_model=list[CalendarEntryRead])
def update_calendar(
    villa_uid: str,
    payload: CalendarOverridePayload,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> list[CalendarEntryRead]:
    """
    Block or unblock a date range (villa host or admin).

    Returns:
        list[CalendarEntryRead]: Entries for the range after the update
    """
    try:
        return set_calendar_availability(engine, actor, villa_uid, payload)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("calendar_update_failed", villa_uid=villa_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
