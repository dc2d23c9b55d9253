"""
Availability index: overlap detection, calendar blocks and nightly pricing.

Every check that decides whether a date range is free goes through
ranges_overlap / overlap_condition in this module, so the half-open
interval rule is defined exactly once:

    [a1, b1) and [a2, b2) overlap iff a1 < b2 and a2 < b1

A check-out date may therefore be the next stay's check-in date.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import ColumnElement, and_, select
from sqlalchemy.engine import Connection, Engine

from villa_booking.db.readers.availability import get_calendar_entries, get_pricing_rules
from villa_booking.db.readers.villas import get_villa
from villa_booking.errors import NotFoundError, ValidationError
from villa_booking.models.bookings import Booking
from villa_booking.models.calendar import VillaCalendarEntry
from villa_booking.schemas.availability import AvailabilityQuote, NightlyRate, Quote
from villa_booking.schemas.bookings import BookingStatus
from villa_booking.utils.datetime import nights_between, stay_dates

logger = structlog.get_logger(__name__)

# Bookings in these statuses hold their dates
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.PAID)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """
    Return True if half-open ranges [start_a, end_a) and [start_b, end_b) share a night.

    Example:
        >>> ranges_overlap(date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 3), date(2025, 1, 5))
        False
    """
    return start_a < end_b and start_b < end_a


def overlap_condition(check_in: date, check_out: date) -> ColumnElement[bool]:
    """SQL form of ranges_overlap against a booking's [check_in, check_out)."""
    return and_(Booking.check_in < check_out, Booking.check_out > check_in)


def validate_range(check_in: date, check_out: date) -> int:
    """
    Ensure check_in < check_out.

    Returns:
        int: Number of nights in the range.

    Raises:
        ValidationError: If the range is empty or reversed.
    """
    if check_in >= check_out:
        raise ValidationError("check_out must be after check_in")
    return nights_between(check_in, check_out)


def find_overlapping_bookings(
    conn: Connection,
    villa_uid: str,
    check_in: date,
    check_out: date,
) -> list[str]:
    """
    List active bookings on a villa that overlap [check_in, check_out).

    Args:
        conn (Connection): Active connection.
        villa_uid (str): Villa ID.
        check_in (date): Range start.
        check_out (date): Range end (exclusive).

    Returns:
        list[str]: booking_uids of overlapping active bookings.
    """
    stmt = (
        select(Booking.booking_uid)
        .where(Booking.villa_uid == villa_uid)
        .where(Booking.status.in_([s.value for s in ACTIVE_STATUSES]))
        .where(overlap_condition(check_in, check_out))
    )
    return list(conn.execute(stmt).scalars().all())


def find_blocked_dates(
    conn: Connection, villa_uid: str, check_in: date, check_out: date
) -> list[date]:
    """List dates in [check_in, check_out) explicitly marked unavailable."""
    stmt = (
        select(VillaCalendarEntry.date)
        .where(VillaCalendarEntry.villa_uid == villa_uid)
        .where(VillaCalendarEntry.date >= check_in)
        .where(VillaCalendarEntry.date < check_out)
        .where(VillaCalendarEntry.is_available == False)  # noqa: E712
        .order_by(VillaCalendarEntry.date)
    )
    return list(conn.execute(stmt).scalars().all())


def range_is_free(conn: Connection, villa_uid: str, check_in: date, check_out: date) -> bool:
    """
    Check calendar blocks and active bookings for [check_in, check_out).

    When the result is used to decide a write, call this inside the villa's
    exclusive section so it cannot go stale before the write.
    """
    if find_blocked_dates(conn, villa_uid, check_in, check_out):
        return False
    if find_overlapping_bookings(conn, villa_uid, check_in, check_out):
        return False
    return True


def resolve_nightly_rates(
    base_rate: Decimal, rules: list[dict[str, Any]], check_in: date, check_out: date
) -> list[NightlyRate]:
    """
    Price each night of [check_in, check_out).

    A night covered by several rules takes the rule with the shortest span;
    equal spans go to the most recently created rule (highest rule_id).
    Uncovered nights use the villa's base rate.

    Args:
        base_rate (Decimal): Villa nightly_rate.
        rules (list[dict[str, Any]]): Pricing rule rows for the villa.
        check_in (date): First night.
        check_out (date): Exclusive end.

    Returns:
        list[NightlyRate]: One entry per night, in date order.
    """
    nights: list[NightlyRate] = []
    for night in stay_dates(check_in, check_out):
        covering = [r for r in rules if r["start_date"] <= night < r["end_date"]]
        if not covering:
            nights.append(NightlyRate(date=night, rate=Decimal(base_rate), rule_id=None))
            continue

        winner = min(
            covering,
            key=lambda r: (nights_between(r["start_date"], r["end_date"]), -r["rule_id"]),
        )
        nights.append(
            NightlyRate(date=night, rate=Decimal(winner["nightly_rate"]), rule_id=winner["rule_id"])
        )

    return nights


def build_quote(
    villa: dict[str, Any], rules: list[dict[str, Any]], check_in: date, check_out: date
) -> Quote:
    """Assemble a Quote from an already loaded villa row and its pricing rules."""
    nights = resolve_nightly_rates(villa["nightly_rate"], rules, check_in, check_out)
    total = sum((n.rate for n in nights), Decimal("0"))
    return Quote(
        villa_uid=villa["villa_uid"],
        check_in=check_in,
        check_out=check_out,
        currency=villa["currency"],
        nights=nights,
        total=total,
    )


def _load_villa(conn: Connection, villa_uid: str) -> dict[str, Any]:
    villa = get_villa(conn, villa_uid)
    if villa is None:
        raise NotFoundError(f"Villa {villa_uid} not found")
    return villa


def is_available(engine: Engine, villa_uid: str, check_in: date, check_out: date) -> bool:
    """
    Answer whether [check_in, check_out) is free on a villa.

    Lock-free read: the answer may be stale by the time a booking is
    attempted, which re-checks inside the villa's exclusive section.

    Raises:
        ValidationError: If check_in >= check_out.
        NotFoundError: If the villa does not exist.
    """
    validate_range(check_in, check_out)
    with engine.connect() as conn:
        _load_villa(conn, villa_uid)
        return range_is_free(conn, villa_uid, check_in, check_out)


def quote(engine: Engine, villa_uid: str, check_in: date, check_out: date) -> Quote:
    """
    Price a stay night by night. Pure read with no side effects.

    Raises:
        ValidationError: If check_in >= check_out.
        NotFoundError: If the villa does not exist.
    """
    validate_range(check_in, check_out)
    with engine.connect() as conn:
        villa = _load_villa(conn, villa_uid)
        rules = get_pricing_rules(conn, villa_uid, check_in, check_out)
    return build_quote(villa, rules, check_in, check_out)


def quote_availability(
    engine: Engine, villa_uid: str, check_in: date, check_out: date
) -> AvailabilityQuote:
    """
    Combined availability answer and price quote for a prospective stay.

    Args:
        engine (Engine): SQLAlchemy engine.
        villa_uid (str): Villa ID.
        check_in (date): First night.
        check_out (date): Departure date.

    Returns:
        AvailabilityQuote: Nightly breakdown, total, cleaning fee and availability.
    """
    validate_range(check_in, check_out)
    with engine.connect() as conn:
        villa = _load_villa(conn, villa_uid)
        rules = get_pricing_rules(conn, villa_uid, check_in, check_out)
        available = range_is_free(conn, villa_uid, check_in, check_out)

    base = build_quote(villa, rules, check_in, check_out)
    logger.debug(
        "availability_quoted",
        villa_uid=villa_uid,
        check_in=str(check_in),
        check_out=str(check_out),
        available=available,
    )
    return AvailabilityQuote(
        **base.model_dump(),
        available=available,
        cleaning_fee=Decimal(villa["cleaning_fee"]),
    )


def get_calendar(
    engine: Engine, villa_uid: str, start: date, end: date
) -> list[dict[str, Any]]:
    """
    Read calendar entries for [start, end). Dates without an entry are omitted.

    Raises:
        ValidationError: If start >= end.
        NotFoundError: If the villa does not exist.
    """
    validate_range(start, end)
    with engine.connect() as conn:
        _load_villa(conn, villa_uid)
        return get_calendar_entries(conn, villa_uid, start, end)
