from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Connection

from villa_booking.models.calendar import VillaCalendarEntry
from villa_booking.models.pricing import VillaPricingRule


def get_calendar_entries(
    conn: Connection, villa_uid: str, start: date, end: date
) -> list[dict[str, Any]]:
    """
    Fetch calendar entries for dates in [start, end).

    Args:
        conn (Connection): SQLAlchemy DB connection.
        villa_uid (str): Villa ID.
        start (date): First date (inclusive).
        end (date): Last date (exclusive).

    Returns:
        list[dict[str, Any]]: Entries ordered by date. Dates without an entry are omitted.
    """
    result = conn.execute(
        select(VillaCalendarEntry)
        .where(VillaCalendarEntry.villa_uid == villa_uid)
        .where(VillaCalendarEntry.date >= start)
        .where(VillaCalendarEntry.date < end)
        .order_by(VillaCalendarEntry.date)
    )
    return [dict(row) for row in result.mappings().fetchall()]


def get_pricing_rules(
    conn: Connection, villa_uid: str, start: date | None = None, end: date | None = None
) -> list[dict[str, Any]]:
    """
    Fetch pricing rules for a villa, optionally only those touching [start, end).

    Args:
        conn (Connection): SQLAlchemy DB connection.
        villa_uid (str): Villa ID.
        start (date | None): Range start (inclusive).
        end (date | None): Range end (exclusive).

    Returns:
        list[dict[str, Any]]: Rules in creation order.
    """
    stmt = select(VillaPricingRule).where(VillaPricingRule.villa_uid == villa_uid)
    if start is not None and end is not None:
        stmt = stmt.where(VillaPricingRule.start_date < end).where(
            VillaPricingRule.end_date > start
        )
    stmt = stmt.order_by(VillaPricingRule.rule_id)

    return [dict(row) for row in conn.execute(stmt).mappings().fetchall()]
