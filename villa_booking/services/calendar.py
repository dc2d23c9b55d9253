"""Host-facing calendar and pricing management for a villa."""

from __future__ import annotations

from datetime import date
from typing import Optional

import structlog
from sqlalchemy.engine import Engine

from villa_booking.db.readers.availability import get_calendar_entries, get_pricing_rules
from villa_booking.db.readers.villas import get_villa
from villa_booking.db.writers.calendar import set_calendar_range
from villa_booking.db.writers.pricing import insert_pricing_rule
from villa_booking.errors import ConflictError, NotFoundError, ValidationError
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.availability import (
    CalendarEntryRead,
    CalendarOverridePayload,
    CalendarSource,
    PricingRuleCreatePayload,
    PricingRuleRead,
)
from villa_booking.services.availability import get_calendar, validate_range
from villa_booking.services.coordinator import VillaLockRegistry, villa_section
from villa_booking.services.ledger import require_villa_manager, track_operation

logger = structlog.get_logger(__name__)


def add_pricing_rule(
    engine: Engine,
    actor: Actor,
    villa_uid: str,
    payload: PricingRuleCreatePayload,
    registry: Optional[VillaLockRegistry] = None,
) -> PricingRuleRead:
    """
    Add a nightly rate override for [start_date, end_date).

    Existing bookings keep the price they were created with; the rule only
    affects quotes and bookings made afterwards.

    Args:
        engine (Engine): SQLAlchemy engine.
        actor (Actor): Villa host or admin.
        villa_uid (str): Villa ID.
        payload (PricingRuleCreatePayload): Range, rate and notes.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Returns:
        PricingRuleRead: The stored rule.

    Raises:
        ValidationError: start_date >= end_date.
        NotFoundError: Villa does not exist.
        PermissionDeniedError: Actor cannot manage the villa.
    """
    validate_range(payload.start_date, payload.end_date)

    with track_operation("add_pricing_rule"):
        with villa_section(engine, villa_uid, registry) as (conn, villa):
            require_villa_manager(actor, villa)
            rule_id = insert_pricing_rule(
                conn,
                villa_uid,
                payload.start_date,
                payload.end_date,
                payload.nightly_rate,
                payload.notes,
            )

    logger.info(
        "pricing_rule_added",
        villa_uid=villa_uid,
        rule_id=rule_id,
        start_date=str(payload.start_date),
        end_date=str(payload.end_date),
        nightly_rate=str(payload.nightly_rate),
    )
    return PricingRuleRead(rule_id=rule_id, villa_uid=villa_uid, **payload.model_dump())


def list_pricing_rules(engine: Engine, villa_uid: str) -> list[PricingRuleRead]:
    """List a villa's pricing rules in creation order."""
    with engine.connect() as conn:
        if get_villa(conn, villa_uid) is None:
            raise NotFoundError(f"Villa {villa_uid} not found")
        rules = get_pricing_rules(conn, villa_uid)
    return [PricingRuleRead.model_validate(rule) for rule in rules]


def set_calendar_availability(
    engine: Engine,
    actor: Actor,
    villa_uid: str,
    payload: CalendarOverridePayload,
    registry: Optional[VillaLockRegistry] = None,
) -> list[CalendarEntryRead]:
    """
    Block or unblock dates manually, or apply an external calendar sync.

    Dates currently held by a booking cannot be overridden: the hold is only
    released by rejecting or cancelling that booking.

    Args:
        engine (Engine): SQLAlchemy engine.
        actor (Actor): Villa host or admin.
        villa_uid (str): Villa ID.
        payload (CalendarOverridePayload): Range, availability and source.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Returns:
        list[CalendarEntryRead]: Calendar entries for the range after the update.

    Raises:
        ValidationError: Bad range, or source "booking".
        ConflictError: Some dates are held by a booking.
    """
    validate_range(payload.start_date, payload.end_date)
    if payload.source == CalendarSource.BOOKING:
        raise ValidationError("Booking holds are managed by the booking ledger")

    with track_operation("set_calendar"):
        with villa_section(engine, villa_uid, registry) as (conn, villa):
            require_villa_manager(actor, villa)

            entries = get_calendar_entries(conn, villa_uid, payload.start_date, payload.end_date)
            held = [e["date"] for e in entries if e["booking_uid"] is not None]
            if held:
                raise ConflictError(
                    f"{len(held)} date(s) in this range are held by a booking and cannot be changed"
                )

            set_calendar_range(
                conn,
                villa_uid,
                payload.start_date,
                payload.end_date,
                payload.is_available,
                payload.source,
            )
            entries = get_calendar_entries(conn, villa_uid, payload.start_date, payload.end_date)

    logger.info(
        "calendar_updated",
        villa_uid=villa_uid,
        start_date=str(payload.start_date),
        end_date=str(payload.end_date),
        is_available=payload.is_available,
        source=payload.source.value,
    )
    return [CalendarEntryRead.model_validate(e) for e in entries]


def read_calendar(
    engine: Engine, villa_uid: str, start: date, end: date
) -> list[CalendarEntryRead]:
    """Calendar entries for [start, end). Dates without an entry are omitted."""
    entries = get_calendar(engine, villa_uid, start, end)
    return [CalendarEntryRead.model_validate(e) for e in entries]
