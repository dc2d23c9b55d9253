from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import insert
from sqlalchemy.engine import Connection

from villa_booking.models.pricing import VillaPricingRule
from villa_booking.utils.datetime import utc_now


def insert_pricing_rule(
    conn: Connection,
    villa_uid: str,
    start_date: date,
    end_date: date,
    nightly_rate: Decimal,
    notes: Optional[str] = None,
) -> int:
    """
    Insert a pricing rule and return its rule_id.

    Args:
        conn (Connection): Active connection.
        villa_uid (str): Villa ID.
        start_date (date): First night covered.
        end_date (date): Exclusive end of the rule.
        nightly_rate (Decimal): Rate applied to covered nights.
        notes (Optional[str]): Free text from the host.

    Returns:
        int: Newly assigned rule_id.
    """
    result = conn.execute(
        insert(VillaPricingRule).values(
            villa_uid=villa_uid,
            start_date=start_date,
            end_date=end_date,
            nightly_rate=nightly_rate,
            notes=notes,
            created_at=utc_now(),
        )
    )
    return int(result.inserted_primary_key[0])
