from typing import Optional
from uuid import uuid4

from sqlalchemy import insert
from sqlalchemy.engine import Connection

from villa_booking.models.reviews import Review
from villa_booking.schemas.reviews import ReviewDirection
from villa_booking.utils.datetime import utc_now


def insert_review(
    conn: Connection,
    booking_uid: str,
    villa_uid: str,
    direction: ReviewDirection,
    author_uid: str,
    subject_uid: str,
    rating: int,
    text: Optional[str] = None,
) -> str:
    """
    Insert a review. Raises IntegrityError if the direction was already reviewed.

    Returns:
        str: The new review_uid.
    """
    review_uid = uuid4().hex
    conn.execute(
        insert(Review).values(
            review_uid=review_uid,
            booking_uid=booking_uid,
            villa_uid=villa_uid,
            direction=direction.value,
            author_uid=author_uid,
            subject_uid=subject_uid,
            rating=rating,
            text=text,
            created_at=utc_now(),
        )
    )
    return review_uid
