from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from villa_booking.models.villas import Villa


def get_villa(
    conn: Connection, villa_uid: str, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a villa that has not been deleted.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        villa_uid (str): Villa ID.
        for_update (bool): Take a row lock held until the transaction ends.

    Returns:
        Optional[dict[str, Any]]: Villa columns, or None if missing or deleted.
    """
    stmt = select(Villa).where(Villa.villa_uid == villa_uid).where(
        Villa.is_deleted == False  # noqa: E712
    )
    if for_update:
        stmt = stmt.with_for_update()

    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None
