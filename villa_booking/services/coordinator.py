"""
Reservation coordinator: per-villa serialization of booking mutations.

Every operation that reads availability to decide a write (create, approve,
reject, cancel, the settlement phases of pay, completion, calendar and
pricing changes) runs inside villa_section(). The section combines an
in-process lock keyed by villa_uid with a row lock on the villa
(SELECT ... FOR UPDATE), so operations on one villa are totally ordered
across threads and across processes sharing the database, while different
villas proceed in parallel.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from uuid import uuid4

import structlog
from sqlalchemy.engine import Connection, Engine

from villa_booking.db.readers.availability import get_pricing_rules
from villa_booking.db.readers.bookings import get_booking
from villa_booking.db.readers.villas import get_villa
from villa_booking.db.writers.bookings import insert_booking
from villa_booking.db.writers.calendar import hold_dates
from villa_booking.db.writers.guests import insert_booking_guest
from villa_booking.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from villa_booking.metrics import availability_conflicts, villa_lock_wait
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.bookings import BookingCreatePayload, BookingStatus
from villa_booking.services.availability import build_quote, range_is_free, validate_range
from villa_booking.services.ledger import compute_charges, record_transition
from villa_booking.utils.datetime import utc_today

logger = structlog.get_logger(__name__)

VILLA_LIVE = "live"


class VillaLockRegistry:
    """
    Keyed mutex map: one threading.Lock per villa, created on first use.

    Example:
        >>> registry = VillaLockRegistry()
        >>> with registry.acquire("villa-1"):
        ...     pass  # only one thread per villa gets here at a time
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, villa_uid: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(villa_uid)
            if lock is None:
                lock = threading.Lock()
                self._locks[villa_uid] = lock
            return lock

    @contextmanager
    def acquire(self, villa_uid: str) -> Iterator[None]:
        lock = self.lock_for(villa_uid)
        start_time = time.perf_counter()
        with lock:
            villa_lock_wait.observe(time.perf_counter() - start_time)
            yield

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


# Global registry shared by every request thread in the process
villa_locks = VillaLockRegistry()


@contextmanager
def villa_section(
    engine: Engine, villa_uid: str, registry: Optional[VillaLockRegistry] = None
) -> Iterator[tuple[Connection, dict[str, Any]]]:
    """
    Enter a villa's exclusive section inside one database transaction.

    The transaction commits when the block exits normally and rolls back
    when it raises, so an operation that fails partway writes nothing.

    Args:
        engine: SQLAlchemy engine
        villa_uid: Villa to serialize on
        registry: Lock registry (defaults to the process-wide one)

    Yields:
        (conn, villa): Connection inside the transaction and the locked villa row

    Raises:
        NotFoundError: If the villa does not exist or is deleted
    """
    with (registry or villa_locks).acquire(villa_uid):
        with engine.begin() as conn:
            villa = get_villa(conn, villa_uid, for_update=True)
            if villa is None:
                raise NotFoundError(f"Villa {villa_uid} not found")
            yield conn, villa


def validate_stay(payload: BookingCreatePayload, villa: dict[str, Any], nights: int) -> None:
    """
    Check guest count and stay length against the villa's limits.

    Raises:
        ValidationError: If either is out of bounds.
    """
    if payload.guest_count < 1:
        raise ValidationError("guest_count must be at least 1")
    if payload.guest_count > villa["guest_count"]:
        raise ValidationError(f"Villa accommodates at most {villa['guest_count']} guests")
    if nights < villa["min_stay_nights"]:
        raise ValidationError(f"Minimum stay is {villa['min_stay_nights']} nights")
    if nights > villa["max_stay_nights"]:
        raise ValidationError(f"Maximum stay is {villa['max_stay_nights']} nights")


def reserve(
    engine: Engine,
    actor: Actor,
    payload: BookingCreatePayload,
    registry: Optional[VillaLockRegistry] = None,
) -> dict[str, Any]:
    """
    Create a booking atomically with respect to the villa's calendar.

    Availability is re-checked, the stay priced and the booking written
    together with its calendar hold, all inside the villa's exclusive
    section. Two overlapping requests for one villa therefore cannot both
    succeed: the second one sees the first one's hold.

    Args:
        engine: SQLAlchemy engine
        actor: Guest making the request (email must be verified)
        payload: Villa, dates and guest count
        registry: Lock registry (defaults to the process-wide one)

    Returns:
        dict[str, Any]: The stored booking row

    Raises:
        PermissionDeniedError: Actor's email is not verified
        ValidationError: Bad range, past check-in, guest count or stay length
        NotFoundError: Villa does not exist
        ConflictError: Villa is not live, or the dates are taken
    """
    if not actor.is_email_verified:
        raise PermissionDeniedError("Email must be verified before booking")

    nights = validate_range(payload.check_in, payload.check_out)
    if payload.check_in < utc_today():
        raise ValidationError("check_in cannot be in the past")

    log = logger.bind(
        villa_uid=payload.villa_uid,
        guest_uid=actor.user_uid,
        check_in=str(payload.check_in),
        check_out=str(payload.check_out),
    )

    with villa_section(engine, payload.villa_uid, registry) as (conn, villa):
        if villa["status"] != VILLA_LIVE:
            raise ConflictError("Villa is not available for booking")

        validate_stay(payload, villa, nights)

        if not range_is_free(conn, villa["villa_uid"], payload.check_in, payload.check_out):
            availability_conflicts.inc()
            log.info("booking_conflict")
            raise ConflictError("Villa is unavailable for the selected dates")

        rules = get_pricing_rules(conn, villa["villa_uid"], payload.check_in, payload.check_out)
        quote = build_quote(villa, rules, payload.check_in, payload.check_out)
        charges = compute_charges(quote.total, villa["cleaning_fee"], nights)

        status = BookingStatus.CONFIRMED if villa["instant_book"] else BookingStatus.PENDING
        booking_uid = uuid4().hex

        insert_booking(
            conn,
            {
                "booking_uid": booking_uid,
                "villa_uid": villa["villa_uid"],
                "guest_uid": actor.user_uid,
                "host_uid": villa["host_uid"],
                "check_in": payload.check_in,
                "check_out": payload.check_out,
                "guest_count": payload.guest_count,
                "status": status.value,
                "instant_book": bool(villa["instant_book"]),
                "price_nightly": charges.price_nightly,
                "accommodation_total": charges.accommodation_total,
                "cleaning_fee": charges.cleaning_fee,
                "service_fee": charges.service_fee,
                "tax_fee": charges.tax_fee,
                "payout_amount": charges.payout_amount,
                "currency": villa["currency"],
                "review_prompted": False,
            },
        )
        hold_dates(conn, villa["villa_uid"], booking_uid, payload.check_in, payload.check_out)
        insert_booking_guest(conn, booking_uid, actor.user_uid, is_primary=True)

        booking = get_booking(conn, booking_uid)

    record_transition(None, status)
    log.info("booking_created", booking_uid=booking_uid, status=status.value)
    return booking  # type: ignore[return-value]
