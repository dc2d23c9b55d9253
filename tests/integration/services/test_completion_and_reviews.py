"""
Integration tests for stay completion, the completion sweep and reviews.
"""

from __future__ import annotations

from typing import Callable
from unittest.mock import patch

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from conftest import FakeSettlement, days
from villa_booking.errors import ConflictError, PermissionDeniedError, StateError
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.bookings import BookingCreatePayload, BookingStatus
from villa_booking.schemas.reviews import ReviewCreatePayload, ReviewDirection
from villa_booking.services import bookings as booking_service
from villa_booking.services.bookings import (
    complete_booking,
    complete_due_bookings,
    create_booking,
    get_booking,
    pay_booking,
)
from villa_booking.services.reviews import can_review, record_review, review_eligibility


@pytest.fixture
def paid_booking_uid(
    db_engine: Engine, make_villa: Callable[..., str], guest: Actor, settlement: FakeSettlement
) -> str:
    """Paid 2-night stay checking out 4 days from now."""
    villa_uid = make_villa()
    booking = create_booking(
        db_engine,
        guest,
        BookingCreatePayload(
            villa_uid=villa_uid, check_in=days(2), check_out=days(4), guest_count=2
        ),
    )
    pay_booking(db_engine, guest, booking.booking_uid, "card", settlement)
    return booking.booking_uid


@pytest.fixture
def completed_booking_uid(db_engine: Engine, paid_booking_uid: str) -> str:
    complete_booking(db_engine, paid_booking_uid, today=days(4))
    return paid_booking_uid


def review(direction: ReviewDirection, rating: int = 5) -> ReviewCreatePayload:
    return ReviewCreatePayload(direction=direction, rating=rating, text="Lovely")


# =============================================================================
# Completion
# =============================================================================


@pytest.mark.integration
def test_complete_on_checkout_day_prompts_review(
    db_engine: Engine, paid_booking_uid: str, admin: Actor
) -> None:
    completed = complete_booking(db_engine, paid_booking_uid, today=days(4), actor=admin)

    assert completed.status == BookingStatus.COMPLETED
    assert completed.review_prompted is True


@pytest.mark.integration
def test_complete_before_checkout_is_refused(db_engine: Engine, paid_booking_uid: str) -> None:
    with pytest.raises(StateError, match="check-out"):
        complete_booking(db_engine, paid_booking_uid, today=days(3))


@pytest.mark.integration
def test_only_admin_can_complete_directly(
    db_engine: Engine, paid_booking_uid: str, guest: Actor, host: Actor
) -> None:
    for actor in (guest, host):
        with pytest.raises(PermissionDeniedError):
            complete_booking(db_engine, paid_booking_uid, today=days(4), actor=actor)


@pytest.mark.integration
def test_unpaid_booking_cannot_complete(
    db_engine: Engine, make_villa: Callable[..., str], guest: Actor
) -> None:
    booking = create_booking(
        db_engine,
        guest,
        BookingCreatePayload(
            villa_uid=make_villa(), check_in=days(1), check_out=days(2), guest_count=1
        ),
    )

    with pytest.raises(StateError):
        complete_booking(db_engine, booking.booking_uid, today=days(5))


@pytest.mark.integration
def test_completion_sweep_completes_due_bookings_only(
    db_engine: Engine,
    make_villa: Callable[..., str],
    paid_booking_uid: str,
    guest: Actor,
    settlement: FakeSettlement,
) -> None:
    later = create_booking(
        db_engine,
        guest,
        BookingCreatePayload(
            villa_uid=make_villa(), check_in=days(10), check_out=days(12), guest_count=1
        ),
    )
    pay_booking(db_engine, guest, later.booking_uid, "card", settlement)

    counts = complete_due_bookings(db_engine, today=days(5), dry_run=False)

    assert counts == {"completed": 1, "skipped": 0, "failed": 0, "prompted": 0}
    assert get_booking(db_engine, guest, paid_booking_uid).status == BookingStatus.COMPLETED
    assert get_booking(db_engine, guest, later.booking_uid).status == BookingStatus.PAID


@pytest.mark.integration
def test_completion_sweep_dry_run_writes_nothing(
    db_engine: Engine, paid_booking_uid: str, guest: Actor
) -> None:
    counts = complete_due_bookings(db_engine, today=days(5), dry_run=True)

    assert counts["skipped"] == 1
    assert counts["completed"] == 0
    assert get_booking(db_engine, guest, paid_booking_uid).status == BookingStatus.PAID


@pytest.mark.integration
def test_completion_sweep_continues_after_unexpected_error(
    db_engine: Engine,
    paid_booking_uid: str,
    guest: Actor,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def broken(*args: object, **kwargs: object) -> None:
        raise RuntimeError("disk full")

    monkeypatch.setattr(booking_service, "complete_booking", broken)

    counts = complete_due_bookings(db_engine, today=days(5), dry_run=False)

    assert counts["failed"] == 1
    assert get_booking(db_engine, guest, paid_booking_uid).status == BookingStatus.PAID


@pytest.mark.integration
def test_completion_sweep_prompts_completed_bookings_missing_prompt(
    db_engine: Engine, paid_booking_uid: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    # Simulate a completion that never reached the prompt step
    monkeypatch.setattr(booking_service, "mark_review_prompted", lambda conn, uid: False)
    complete_booking(db_engine, paid_booking_uid, today=days(4))
    monkeypatch.undo()

    counts = complete_due_bookings(db_engine, today=days(5), dry_run=False)

    assert counts["prompted"] == 1
    assert counts["completed"] == 0


# =============================================================================
# Reviews
# =============================================================================


@pytest.mark.integration
def test_review_before_completion_is_refused(
    db_engine: Engine, paid_booking_uid: str, guest: Actor
) -> None:
    assert not can_review(db_engine, paid_booking_uid, ReviewDirection.GUEST_ON_VILLA)

    with pytest.raises(StateError):
        record_review(db_engine, guest, paid_booking_uid, review(ReviewDirection.GUEST_ON_VILLA))


@pytest.mark.integration
def test_guest_reviews_villa_once(
    db_engine: Engine, completed_booking_uid: str, guest: Actor
) -> None:
    assert can_review(db_engine, completed_booking_uid, ReviewDirection.GUEST_ON_VILLA)

    stored = record_review(
        db_engine, guest, completed_booking_uid, review(ReviewDirection.GUEST_ON_VILLA, 4)
    )

    assert stored.author_uid == guest.user_uid
    assert stored.subject_uid.startswith("villa-")
    assert stored.rating == 4

    with pytest.raises(ConflictError, match="already left a review"):
        record_review(
            db_engine, guest, completed_booking_uid, review(ReviewDirection.GUEST_ON_VILLA)
        )

    eligibility = review_eligibility(
        db_engine, completed_booking_uid, ReviewDirection.GUEST_ON_VILLA
    )
    assert eligibility.eligible is False
    assert eligibility.reason == "You have already left a review for this booking"


@pytest.mark.integration
def test_directions_are_independent(
    db_engine: Engine, completed_booking_uid: str, guest: Actor, host: Actor
) -> None:
    record_review(db_engine, guest, completed_booking_uid, review(ReviewDirection.GUEST_ON_VILLA))

    stored = record_review(
        db_engine, host, completed_booking_uid, review(ReviewDirection.HOST_ON_GUEST, 5)
    )

    assert stored.subject_uid == guest.user_uid


@pytest.mark.integration
def test_wrong_author_cannot_review(
    db_engine: Engine, completed_booking_uid: str, guest: Actor, host: Actor
) -> None:
    with pytest.raises(PermissionDeniedError):
        record_review(
            db_engine, host, completed_booking_uid, review(ReviewDirection.GUEST_ON_VILLA)
        )
    with pytest.raises(PermissionDeniedError):
        record_review(
            db_engine, guest, completed_booking_uid, review(ReviewDirection.HOST_ON_GUEST)
        )

    eligibility = review_eligibility(
        db_engine, completed_booking_uid, ReviewDirection.GUEST_ON_VILLA, actor=host
    )
    assert eligibility.eligible is False
    assert "guest" in eligibility.reason


@pytest.mark.integration
def test_eligibility_hidden_from_strangers(
    db_engine: Engine, completed_booking_uid: str, other_guest: Actor, admin: Actor
) -> None:
    with pytest.raises(PermissionDeniedError):
        review_eligibility(
            db_engine, completed_booking_uid, ReviewDirection.GUEST_ON_VILLA, actor=other_guest
        )

    eligibility = review_eligibility(
        db_engine, completed_booking_uid, ReviewDirection.GUEST_ON_VILLA, actor=admin
    )
    assert eligibility.eligible is False
    assert "guest" in eligibility.reason


@pytest.mark.integration
def test_concurrent_duplicate_review_is_conflict(
    db_engine: Engine, completed_booking_uid: str, guest: Actor
) -> None:
    record_review(db_engine, guest, completed_booking_uid, review(ReviewDirection.GUEST_ON_VILLA))

    # Pre-check misses the stored review, as for a writer that lost the race
    with patch("villa_booking.services.reviews.get_review", return_value=None):
        with pytest.raises(ConflictError, match="already left a review") as exc_info:
            record_review(
                db_engine, guest, completed_booking_uid, review(ReviewDirection.GUEST_ON_VILLA)
            )

    assert isinstance(exc_info.value.__cause__, IntegrityError)
