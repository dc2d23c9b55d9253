"""
Booking lifecycle operations.

Each public function either returns the updated entity or raises a
BookingEngineError having written nothing. Mutations run inside the villa's
exclusive section (see services.coordinator); the only blocking call made
outside it is the settlement charge, which is bracketed by a pending payment
record so a second concurrent pay attempt is refused instead of charging
twice.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from villa_booking.config import DRY_RUN, PAYOUT_TRANSFER_METHOD
from villa_booking.db.readers.bookings import (
    get_booking as read_booking,
    get_booking_villa_uid,
    get_bookings_awaiting_review_prompt,
    get_bookings_due_for_completion,
    search_bookings,
)
from villa_booking.db.readers.payments import (
    get_payment,
    get_payment_by_status,
    get_payments,
    search_payments,
)
from villa_booking.db.writers.bookings import mark_review_prompted, transition_booking
from villa_booking.db.writers.calendar import release_dates
from villa_booking.db.writers.payments import (
    cancel_payout,
    insert_payout,
    insert_pending_payment,
    mark_payment_failed,
    mark_payment_paid,
    mark_payment_refunded,
)
from villa_booking.errors import (
    BookingEngineError,
    ConflictError,
    DependencyError,
    NotFoundError,
    PaymentDeclinedError,
    PermissionDeniedError,
    StateError,
)
from villa_booking.metrics import sweep_results
from villa_booking.schemas.actors import Actor, UserType
from villa_booking.schemas.bookings import (
    BookingCreatePayload,
    BookingRead,
    BookingSearchParams,
    BookingStatus,
    PaymentOutcome,
    PaymentRead,
    PaymentSearchParams,
    PaymentStatus,
)
from villa_booking.services.coordinator import VillaLockRegistry, reserve, villa_section
from villa_booking.services.ledger import (
    compute_payout,
    ensure_transition,
    guest_total,
    is_guest,
    is_host,
    record_transition,
    require_guest,
    require_host,
    require_party_or_admin,
    track_operation,
)
from villa_booking.services.settlement import (
    ChargeResult,
    ChargeStatus,
    SettlementAdapter,
    call_settlement,
)
from villa_booking.utils.datetime import utc_now, utc_today

logger = structlog.get_logger(__name__)


@contextmanager
def booking_section(
    engine: Engine, booking_uid: str, registry: Optional[VillaLockRegistry] = None
) -> Iterator[tuple[Connection, dict[str, Any]]]:
    """
    Enter the exclusive section of a booking's villa and load the booking.

    Yields:
        (conn, booking): Connection inside the transaction and the locked booking row

    Raises:
        NotFoundError: If the booking does not exist
    """
    with engine.connect() as conn:
        villa_uid = get_booking_villa_uid(conn, booking_uid)
    if villa_uid is None:
        raise NotFoundError(f"Booking {booking_uid} not found")

    with villa_section(engine, villa_uid, registry) as (conn, _villa):
        booking = read_booking(conn, booking_uid, for_update=True)
        if booking is None:
            raise NotFoundError(f"Booking {booking_uid} not found")
        yield conn, booking


def _reload(conn: Connection, booking_uid: str) -> BookingRead:
    return BookingRead.model_validate(read_booking(conn, booking_uid))


# =============================================================================
# Creation and host decisions
# =============================================================================


def create_booking(
    engine: Engine,
    actor: Actor,
    payload: BookingCreatePayload,
    registry: Optional[VillaLockRegistry] = None,
) -> BookingRead:
    """
    Request a stay. Confirmed immediately on instant-book villas, pending otherwise.

    Args:
        engine (Engine): SQLAlchemy engine.
        actor (Actor): Guest making the request.
        payload (BookingCreatePayload): Villa, dates and guest count.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Returns:
        BookingRead: The new booking, with its dates already held on the calendar.
    """
    with track_operation("create"):
        booking = reserve(engine, actor, payload, registry)
    return BookingRead.model_validate(booking)


def approve_booking(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    registry: Optional[VillaLockRegistry] = None,
) -> BookingRead:
    """
    Host confirms a pending booking. payout_amount is recomputed here for the last time.

    Raises:
        PermissionDeniedError: Actor is not the villa's host.
        StateError: Booking is not pending (approving twice is refused, never re-applied).
    """
    with track_operation("approve"):
        with booking_section(engine, booking_uid, registry) as (conn, booking):
            require_host(actor, booking, "approve")
            current = ensure_transition(booking["status"], BookingStatus.CONFIRMED)

            payout_amount = compute_payout(
                booking["accommodation_total"], booking["cleaning_fee"], booking["service_fee"]
            )
            transition_booking(
                conn, booking_uid, current, BookingStatus.CONFIRMED, payout_amount=payout_amount
            )
            updated = _reload(conn, booking_uid)

    record_transition(current, BookingStatus.CONFIRMED)
    logger.info("booking_approved", booking_uid=booking_uid, host_uid=actor.user_uid)
    return updated


def reject_booking(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    registry: Optional[VillaLockRegistry] = None,
) -> BookingRead:
    """
    Host declines a pending booking and its calendar hold is released.

    Raises:
        PermissionDeniedError: Actor is not the villa's host.
        StateError: Booking is not pending.
    """
    with track_operation("reject"):
        with booking_section(engine, booking_uid, registry) as (conn, booking):
            require_host(actor, booking, "reject")
            current = ensure_transition(booking["status"], BookingStatus.REJECTED)

            transition_booking(conn, booking_uid, current, BookingStatus.REJECTED)
            release_dates(conn, booking_uid)
            updated = _reload(conn, booking_uid)

    record_transition(current, BookingStatus.REJECTED)
    logger.info("booking_rejected", booking_uid=booking_uid, host_uid=actor.user_uid)
    return updated


# =============================================================================
# Cancellation
# =============================================================================


def cancel_booking(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    settlement: SettlementAdapter,
    reason: Optional[str] = None,
    registry: Optional[VillaLockRegistry] = None,
) -> BookingRead:
    """
    Cancel a pending, confirmed or paid booking and release its dates.

    A paid booking is refunded in full before anything is written; if the
    refund fails the booking stays paid and DependencyError is raised.

    Args:
        engine (Engine): SQLAlchemy engine.
        actor (Actor): Guest, host or admin.
        booking_uid (str): Booking to cancel.
        settlement (SettlementAdapter): Processor used for the refund.
        reason (Optional[str]): Stored as cancellation_reason.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Returns:
        BookingRead: The cancelled booking.

    Raises:
        PermissionDeniedError: Actor is not a party to the booking nor an admin.
        StateError: Booking is completed, rejected or already cancelled.
        ConflictError: A charge is in flight or awaiting reconciliation.
        DependencyError: The refund failed.
    """
    with track_operation("cancel"):
        with booking_section(engine, booking_uid, registry) as (conn, booking):
            require_party_or_admin(actor, booking, "cancel")
            current = ensure_transition(booking["status"], BookingStatus.CANCELLED)

            if get_payment_by_status(conn, booking_uid, PaymentStatus.PENDING):
                raise ConflictError(
                    "A payment for this booking is being processed; reconcile it before cancelling"
                )

            now = utc_now()
            if current == BookingStatus.PAID:
                _refund_paid_booking(conn, booking, settlement, now)

            transition_booking(
                conn,
                booking_uid,
                current,
                BookingStatus.CANCELLED,
                cancelled_at=now,
                cancellation_reason=reason,
            )
            release_dates(conn, booking_uid)
            updated = _reload(conn, booking_uid)

    record_transition(current, BookingStatus.CANCELLED)
    logger.info(
        "booking_cancelled",
        booking_uid=booking_uid,
        cancelled_by=actor.user_uid,
        from_status=current.value,
    )
    return updated


def _refund_paid_booking(
    conn: Connection, booking: dict[str, Any], settlement: SettlementAdapter, now: datetime
) -> None:
    booking_uid = booking["booking_uid"]
    payment = get_payment_by_status(conn, booking_uid, PaymentStatus.PAID)
    if payment is None or not payment["transaction_id"]:
        raise StateError("Paid booking has no settled payment to refund; contact support")

    result = call_settlement(
        "refund",
        booking_uid,
        lambda: settlement.refund(payment["transaction_id"], payment["total_amount"]),
    )
    if result.status != ChargeStatus.SUCCEEDED:
        logger.warning(
            "settlement_refund_not_completed", booking_uid=booking_uid, status=result.status.value
        )
        raise DependencyError("Refund was not completed by the payment processor, please try again")

    mark_payment_refunded(conn, payment["payment_uid"], now)
    cancel_payout(conn, booking_uid)
    logger.info(
        "booking_refunded",
        booking_uid=booking_uid,
        payment_uid=payment["payment_uid"],
        amount=str(payment["total_amount"]),
    )


# =============================================================================
# Payment
# =============================================================================


def _apply_charge_result(
    conn: Connection, booking: dict[str, Any], payment_uid: str, result: ChargeResult
) -> Optional[BookingEngineError]:
    """
    Write the outcome of a charge to the ledger.

    Returns the error to raise once the transaction has committed, so a
    declined charge still leaves its failed payment record behind.
    """
    booking_uid = booking["booking_uid"]

    if result.status == ChargeStatus.PENDING:
        return DependencyError(
            "Payment is awaiting confirmation from the processor; reconcile before retrying"
        )

    if result.status == ChargeStatus.FAILED:
        mark_payment_failed(conn, payment_uid, result.transaction_id)
        logger.info("payment_declined", booking_uid=booking_uid, payment_uid=payment_uid)
        return PaymentDeclinedError("Payment was declined, please try another payment method")

    if not mark_payment_paid(conn, payment_uid, result.transaction_id, utc_now()):
        # Already settled by a concurrent reconciliation
        return None

    current = ensure_transition(booking["status"], BookingStatus.PAID)
    transition_booking(conn, booking_uid, current, BookingStatus.PAID)
    insert_payout(
        conn, booking_uid, booking["host_uid"], booking["payout_amount"], PAYOUT_TRANSFER_METHOD
    )
    record_transition(current, BookingStatus.PAID)
    logger.info(
        "booking_paid",
        booking_uid=booking_uid,
        payment_uid=payment_uid,
        transaction_id=result.transaction_id,
    )
    return None


def _outcome(conn: Connection, booking_uid: str, payment_uid: str) -> PaymentOutcome:
    return PaymentOutcome(
        booking=_reload(conn, booking_uid),
        payment=PaymentRead.model_validate(get_payment(conn, payment_uid)),
    )


def pay_booking(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    method: str,
    settlement: SettlementAdapter,
    registry: Optional[VillaLockRegistry] = None,
) -> PaymentOutcome:
    """
    Charge the guest for a confirmed booking.

    Runs in three steps: a pending payment record is written under the villa
    section, the processor is charged outside it, and the outcome is written
    under the section again. The pending record is what makes a concurrent
    second attempt fail with ConflictError rather than charge again.

    Args:
        engine (Engine): SQLAlchemy engine.
        actor (Actor): The booking's guest.
        booking_uid (str): Booking to pay.
        method (str): Payment method (card, stripe, ...).
        settlement (SettlementAdapter): Processor to charge.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Returns:
        PaymentOutcome: The paid booking and its payment record.

    Raises:
        PermissionDeniedError: Actor is not the guest.
        StateError: Booking already paid, or not confirmed yet.
        ConflictError: Another charge is in flight or awaiting reconciliation.
        PaymentDeclinedError: Processor declined; a failed payment is recorded.
        DependencyError: Processor failed or timed out; the payment stays
            pending and must be reconciled.
    """
    with track_operation("pay"):
        with booking_section(engine, booking_uid, registry) as (conn, booking):
            require_guest(actor, booking, "pay for")

            if booking["status"] == BookingStatus.PAID.value or get_payment_by_status(
                conn, booking_uid, PaymentStatus.PAID
            ):
                raise StateError("Booking is already paid")
            if get_payment_by_status(conn, booking_uid, PaymentStatus.PENDING):
                raise ConflictError("A payment for this booking is already in progress")
            ensure_transition(booking["status"], BookingStatus.PAID)

            amount = guest_total(booking)
            currency = booking["currency"]
            payment_uid = insert_pending_payment(conn, booking_uid, method, amount, currency)

        log = logger.bind(booking_uid=booking_uid, payment_uid=payment_uid)
        log.info("payment_started", amount=str(amount), currency=currency, method=method)

        result = call_settlement(
            "charge",
            booking_uid,
            lambda: settlement.charge(booking_uid, method, amount, currency),
        )

        with booking_section(engine, booking_uid, registry) as (conn, booking):
            error = _apply_charge_result(conn, booking, payment_uid, result)
            outcome = _outcome(conn, booking_uid, payment_uid)

        if error is not None:
            raise error

    return outcome


def reconcile_payment(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    settlement: SettlementAdapter,
    registry: Optional[VillaLockRegistry] = None,
) -> PaymentOutcome:
    """
    Settle a pending payment by asking the processor what happened to the charge.

    Raises:
        PermissionDeniedError: Actor is not a party to the booking nor an admin.
        StateError: There is no pending payment to reconcile.
        DependencyError: Processor unreachable, or the charge is still pending.

    A charge the processor reports as failed is recorded and returned, not
    raised: the guest may then pay again.
    """
    with track_operation("reconcile"):
        with booking_section(engine, booking_uid, registry) as (conn, booking):
            require_party_or_admin(actor, booking, "reconcile payments for")
            pending = get_payment_by_status(conn, booking_uid, PaymentStatus.PENDING)
            if pending is None:
                raise StateError("Booking has no pending payment to reconcile")
            payment_uid = pending["payment_uid"]

        result = call_settlement(
            "retrieve_charge", booking_uid, lambda: settlement.retrieve_charge(booking_uid)
        )

        with booking_section(engine, booking_uid, registry) as (conn, booking):
            error = _apply_charge_result(conn, booking, payment_uid, result)
            outcome = _outcome(conn, booking_uid, payment_uid)

        logger.info(
            "payment_reconciled",
            booking_uid=booking_uid,
            payment_uid=payment_uid,
            processor_status=result.status.value,
        )
        if error is not None and not isinstance(error, PaymentDeclinedError):
            raise error

    return outcome


# =============================================================================
# Completion
# =============================================================================


def complete_booking(
    engine: Engine,
    booking_uid: str,
    today: Optional[date] = None,
    actor: Optional[Actor] = None,
    registry: Optional[VillaLockRegistry] = None,
) -> BookingRead:
    """
    Mark a paid booking completed once its check-out date has been reached.

    Completion unlocks reviews and flips review_prompted in the same
    transaction.

    Args:
        engine (Engine): SQLAlchemy engine.
        booking_uid (str): Booking to complete.
        today (Optional[date]): Reference date (defaults to today in UTC).
        actor (Optional[Actor]): Caller when triggered directly; must be an admin.
            None when run by the completion sweep.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Raises:
        PermissionDeniedError: A non-admin actor tried to complete a booking.
        StateError: Booking is not paid, the stay has not ended, or no paid payment exists.
    """
    today = today or utc_today()

    with track_operation("complete"):
        if actor is not None and not actor.is_admin:
            raise PermissionDeniedError("Only an admin can complete bookings")

        with booking_section(engine, booking_uid, registry) as (conn, booking):
            current = ensure_transition(booking["status"], BookingStatus.COMPLETED)
            if booking["check_out"] > today:
                raise StateError("Booking cannot be completed before its check-out date")
            if get_payment_by_status(conn, booking_uid, PaymentStatus.PAID) is None:
                raise StateError("Booking cannot be completed without a paid payment")

            transition_booking(conn, booking_uid, current, BookingStatus.COMPLETED)
            mark_review_prompted(conn, booking_uid)
            updated = _reload(conn, booking_uid)

    record_transition(current, BookingStatus.COMPLETED)
    logger.info("booking_completed", booking_uid=booking_uid)
    return updated


def complete_due_bookings(
    engine: Engine,
    today: Optional[date] = None,
    dry_run: bool = DRY_RUN,
    registry: Optional[VillaLockRegistry] = None,
) -> dict[str, int]:
    """
    Complete every paid booking whose check-out date has passed.

    A failure on one booking is logged and counted; the sweep carries on with
    the rest. Completed bookings that missed their review prompt are prompted
    afterwards.

    Args:
        engine (Engine): SQLAlchemy engine.
        today (Optional[date]): Reference date (defaults to today in UTC).
        dry_run (bool): If True, only log what would be completed.
        registry (Optional[VillaLockRegistry]): Lock registry override.

    Returns:
        dict[str, int]: Counts of completed, skipped, failed and prompted bookings.
    """
    today = today or utc_today()
    logger.info("completion_sweep_started", today=str(today), dry_run=dry_run)

    with engine.connect() as conn:
        due = get_bookings_due_for_completion(conn, today)

    logger.info("due_bookings_found", count=len(due))
    counts = {"completed": 0, "skipped": 0, "failed": 0, "prompted": 0}

    if dry_run:
        for booking_uid, villa_uid in due:
            logger.info(
                "[DRY RUN] would complete booking", booking_uid=booking_uid, villa_uid=villa_uid
            )
        counts["skipped"] = len(due)
        return counts

    for booking_uid, _villa_uid in due:
        try:
            complete_booking(engine, booking_uid, today=today, registry=registry)
            counts["completed"] += 1
            sweep_results.labels(outcome="completed").inc()
        except BookingEngineError as e:
            counts["skipped"] += 1
            sweep_results.labels(outcome="skipped").inc()
            logger.warning("booking_completion_skipped", booking_uid=booking_uid, reason=e.message)
        except Exception as e:
            counts["failed"] += 1
            sweep_results.labels(outcome="failed").inc()
            logger.exception("booking_completion_failed", booking_uid=booking_uid, error=str(e))

    # Bookings completed before a crash between transition and prompt
    with engine.connect() as conn:
        unprompted = get_bookings_awaiting_review_prompt(conn)
    for booking_uid in unprompted:
        with engine.begin() as conn:
            if mark_review_prompted(conn, booking_uid):
                counts["prompted"] += 1

    logger.info("completion_sweep_completed", **counts)
    return counts


# =============================================================================
# Reads
# =============================================================================


def _can_view(actor: Actor, booking: dict[str, Any]) -> bool:
    return actor.is_admin or is_guest(actor, booking) or is_host(actor, booking)


def get_booking(engine: Engine, actor: Actor, booking_uid: str) -> BookingRead:
    """
    Fetch one booking visible to the actor.

    Raises:
        NotFoundError: Booking does not exist.
        PermissionDeniedError: Actor is neither party nor admin.
    """
    with engine.connect() as conn:
        booking = read_booking(conn, booking_uid)

    if booking is None:
        raise NotFoundError(f"Booking {booking_uid} not found")
    if not _can_view(actor, booking):
        raise PermissionDeniedError("You are not allowed to view this booking")

    return BookingRead.model_validate(booking)


def list_bookings(engine: Engine, actor: Actor, params: BookingSearchParams) -> list[BookingRead]:
    """
    Search bookings. Guests see their own, hosts their villas', admins everything.

    Args:
        engine (Engine): SQLAlchemy engine.
        actor (Actor): Caller whose role scopes the results.
        params (BookingSearchParams): Filters, sorting and pagination.

    Returns:
        list[BookingRead]: One page of bookings.
    """
    visible_to_guest = actor.user_uid if actor.user_type == UserType.GUEST else None
    visible_to_host = actor.user_uid if actor.user_type == UserType.HOST else None

    with engine.connect() as conn:
        rows = search_bookings(
            conn, params, visible_to_guest=visible_to_guest, visible_to_host=visible_to_host
        )

    return [BookingRead.model_validate(row) for row in rows]


def list_payments(
    engine: Engine,
    actor: Actor,
    booking_uid: str,
    params: Optional[PaymentSearchParams] = None,
) -> list[PaymentRead]:
    """
    List payment attempts for a booking visible to the actor.

    Without params every attempt is returned, oldest first.
    """
    get_booking(engine, actor, booking_uid)
    with engine.connect() as conn:
        if params is None:
            rows = get_payments(conn, booking_uid)
        else:
            rows = search_payments(conn, booking_uid, params)
    return [PaymentRead.model_validate(row) for row in rows]
