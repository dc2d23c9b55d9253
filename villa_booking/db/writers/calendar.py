from datetime import date
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import delete, insert, update
from sqlalchemy.engine import Connection

from villa_booking.db.readers.availability import get_calendar_entries
from villa_booking.models.calendar import VillaCalendarEntry
from villa_booking.schemas.availability import CalendarSource
from villa_booking.utils.datetime import stay_dates, utc_now

logger = structlog.get_logger(__name__)


def hold_dates(
    conn: Connection, villa_uid: str, booking_uid: str, check_in: date, check_out: date
) -> int:
    """
    Mark every night of [check_in, check_out) unavailable on behalf of a booking.

    Existing rows are taken over and remember their previous source; missing
    dates get a new row with held_from_source NULL. Caller must already have
    verified the range is free.

    Args:
        conn (Connection): Connection inside the villa's exclusive section.
        villa_uid (str): Villa ID.
        booking_uid (str): Booking holding the dates.
        check_in (date): First night.
        check_out (date): Departure date (not held).

    Returns:
        int: Number of nights held.
    """
    now = utc_now()
    existing = {
        entry["date"]: entry for entry in get_calendar_entries(conn, villa_uid, check_in, check_out)
    }

    new_rows: list[dict[str, Any]] = []
    for night in stay_dates(check_in, check_out):
        entry = existing.get(night)
        if entry is None:
            new_rows.append(
                {
                    "villa_calendar_uid": uuid4().hex,
                    "villa_uid": villa_uid,
                    "date": night,
                    "is_available": False,
                    "source": CalendarSource.BOOKING.value,
                    "booking_uid": booking_uid,
                    "held_from_source": None,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            continue

        conn.execute(
            update(VillaCalendarEntry)
            .where(VillaCalendarEntry.villa_calendar_uid == entry["villa_calendar_uid"])
            .values(
                is_available=False,
                source=CalendarSource.BOOKING.value,
                booking_uid=booking_uid,
                held_from_source=entry["source"],
                updated_at=now,
            )
        )

    if new_rows:
        conn.execute(insert(VillaCalendarEntry), new_rows)

    held = len(existing) + len(new_rows)
    logger.debug("calendar_dates_held", villa_uid=villa_uid, booking_uid=booking_uid, nights=held)
    return held


def release_dates(conn: Connection, booking_uid: str) -> int:
    """
    Undo a booking's calendar hold.

    Rows created by the hold are deleted; rows that existed before are
    restored to available with their previous source.

    Args:
        conn (Connection): Connection inside the villa's exclusive section.
        booking_uid (str): Booking whose hold is released.

    Returns:
        int: Number of calendar rows touched.
    """
    deleted = conn.execute(
        delete(VillaCalendarEntry)
        .where(VillaCalendarEntry.booking_uid == booking_uid)
        .where(VillaCalendarEntry.held_from_source.is_(None))
    ).rowcount

    restored = conn.execute(
        update(VillaCalendarEntry)
        .where(VillaCalendarEntry.booking_uid == booking_uid)
        .values(
            is_available=True,
            source=VillaCalendarEntry.held_from_source,
            booking_uid=None,
            held_from_source=None,
            updated_at=utc_now(),
        )
    ).rowcount

    logger.debug(
        "calendar_dates_released", booking_uid=booking_uid, deleted=deleted, restored=restored
    )
    return deleted + restored


def set_calendar_range(
    conn: Connection,
    villa_uid: str,
    start: date,
    end: date,
    is_available: bool,
    source: CalendarSource,
) -> int:
    """
    Write manual or synced availability for every date in [start, end).

    Args:
        conn (Connection): Connection inside the villa's exclusive section.
        villa_uid (str): Villa ID.
        start (date): First date.
        end (date): Exclusive end date.
        is_available (bool): Availability to store.
        source (CalendarSource): manual or sync.

    Returns:
        int: Number of dates written.
    """
    now = utc_now()
    existing = {entry["date"]: entry for entry in get_calendar_entries(conn, villa_uid, start, end)}

    new_rows: list[dict[str, Any]] = []
    written = 0
    for day in stay_dates(start, end):
        written += 1
        entry = existing.get(day)
        if entry is None:
            new_rows.append(
                {
                    "villa_calendar_uid": uuid4().hex,
                    "villa_uid": villa_uid,
                    "date": day,
                    "is_available": is_available,
                    "source": source.value,
                    "booking_uid": None,
                    "held_from_source": None,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            continue

        conn.execute(
            update(VillaCalendarEntry)
            .where(VillaCalendarEntry.villa_calendar_uid == entry["villa_calendar_uid"])
            .values(is_available=is_available, source=source.value, updated_at=now)
        )

    if new_rows:
        conn.execute(insert(VillaCalendarEntry), new_rows)

    return written
