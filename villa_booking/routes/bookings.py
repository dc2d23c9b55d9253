from datetime import date
from typing import Literal, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from villa_booking.dependencies import (
    get_current_actor,
    get_db_engine,
    get_settlement_adapter,
    require_admin,
)
from villa_booking.errors import BookingEngineError
from villa_booking.schemas.actors import Actor
from villa_booking.schemas.bookings import (
    BookingCancelPayload,
    BookingCreatePayload,
    BookingGuestCreatePayload,
    BookingGuestRead,
    BookingPayPayload,
    BookingRead,
    BookingSearchParams,
    BookingStatus,
    PaymentOutcome,
    PaymentRead,
    PaymentSearchParams,
    PaymentStatus,
)
from villa_booking.services import bookings as booking_service
from villa_booking.services import guests as guest_service
from villa_booking.services.settlement import SettlementAdapter

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreatePayload,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> BookingRead:
    """
    Request a stay at a villa.

    Instant-book villas confirm immediately; others wait for host approval.
    The requested dates are held from this moment on.

    Args:
        payload: villa_uid, check_in, check_out, guest_count
        actor: Authenticated guest (email must be verified)
        engine: SQLAlchemy engine

    Returns:
        BookingRead: The new booking
    """
    try:
        return booking_service.create_booking(engine, actor, payload)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("booking_creation_failed", villa_uid=payload.villa_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/bookings", response_model=list[BookingRead])
def search_bookings(
    villa_uid: Optional[str] = Query(None),
    guest_uid: Optional[str] = Query(None),
    host_uid: Optional[str] = Query(None),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    instant_book: Optional[bool] = Query(None),
    date_from: Optional[date] = Query(None, description="Only stays ending after this date"),
    date_to: Optional[date] = Query(None, description="Only stays starting before this date"),
    limit: int = Query(10, gt=0, le=100),
    offset: int = Query(0, ge=0),
    sort_by: Literal["created_at", "check_in", "check_out"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> list[BookingRead]:
    """
    List bookings visible to the caller, filtered, sorted and paginated.

    Guests see their own bookings, hosts the bookings on their villas and
    admins every booking.
    """
    params = BookingSearchParams(
        villa_uid=villa_uid,
        guest_uid=guest_uid,
        host_uid=host_uid,
        status=booking_status,
        instant_book=instant_book,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return booking_service.list_bookings(engine, actor, params)


@router.get("/bookings/{booking_uid}", response_model=BookingRead)
def get_booking(
    booking_uid: str,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> BookingRead:
    return booking_service.get_booking(engine, actor, booking_uid)


@router.post("/bookings/{booking_uid}/approve", response_model=BookingRead)
def approve_booking(
    booking_uid: str,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> BookingRead:
    """Host approves a pending booking."""
    try:
        return booking_service.approve_booking(engine, actor, booking_uid)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("booking_approval_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/{booking_uid}/reject", response_model=BookingRead)
def reject_booking(
    booking_uid: str,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> BookingRead:
    """Host rejects a pending booking; its dates become available again."""
    try:
        return booking_service.reject_booking(engine, actor, booking_uid)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("booking_rejection_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/{booking_uid}/cancel", response_model=BookingRead)
def cancel_booking(
    booking_uid: str,
    payload: Optional[BookingCancelPayload] = None,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
    settlement: SettlementAdapter = Depends(get_settlement_adapter),
) -> BookingRead:
    """
    Cancel a booking (guest, host or admin). Paid bookings are refunded first.

    Returns:
        BookingRead: The cancelled booking
    """
    try:
        return booking_service.cancel_booking(
            engine, actor, booking_uid, settlement, reason=payload.reason if payload else None
        )
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("booking_cancellation_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/{booking_uid}/pay", response_model=PaymentOutcome)
def pay_booking(
    booking_uid: str,
    payload: BookingPayPayload,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
    settlement: SettlementAdapter = Depends(get_settlement_adapter),
) -> PaymentOutcome:
    """
    Charge the guest for a confirmed booking.

    A 503 means the processor failed or timed out: the charge may or may not
    have happened, and the payment must be reconciled before paying again.
    """
    try:
        return booking_service.pay_booking(
            engine, actor, booking_uid, payload.payment_method, settlement
        )
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("booking_payment_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/bookings/{booking_uid}/payments", response_model=list[PaymentRead])
def list_payments(
    booking_uid: str,
    payment_status: Optional[PaymentStatus] = Query(None),
    limit: int = Query(10, gt=0, le=100),
    offset: int = Query(0, ge=0),
    sort_by: Literal["paid_at", "refunded_at"] = Query("paid_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> list[PaymentRead]:
    """Payment attempts for a booking, optionally filtered by status."""
    params = PaymentSearchParams(
        payment_status=payment_status,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return booking_service.list_payments(engine, actor, booking_uid, params)


@router.post("/bookings/{booking_uid}/payments/reconcile", response_model=PaymentOutcome)
def reconcile_payment(
    booking_uid: str,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
    settlement: SettlementAdapter = Depends(get_settlement_adapter),
) -> PaymentOutcome:
    """Settle a pending payment from the processor's record of the charge."""
    try:
        return booking_service.reconcile_payment(engine, actor, booking_uid, settlement)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("payment_reconciliation_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/bookings/{booking_uid}/complete", response_model=BookingRead)
def complete_booking(
    booking_uid: str,
    actor: Actor = Depends(require_admin),
    engine: Engine = Depends(get_db_engine),
) -> BookingRead:
    """Complete a paid booking whose check-out date has passed (admin only)."""
    try:
        return booking_service.complete_booking(engine, booking_uid, actor=actor)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("booking_completion_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/bookings/{booking_uid}/guests", response_model=list[BookingGuestRead])
def list_booking_guests(
    booking_uid: str,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> list[BookingGuestRead]:
    """Travellers on a booking, primary guest first."""
    return guest_service.list_booking_guests(engine, actor, booking_uid)


@router.post(
    "/bookings/{booking_uid}/guests",
    response_model=list[BookingGuestRead],
    status_code=status.HTTP_201_CREATED,
)
def add_booking_guest(
    booking_uid: str,
    payload: BookingGuestCreatePayload,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> list[BookingGuestRead]:
    """
    Add a traveller to the booking's guest list.

    The list may hold at most guest_count travellers, the primary guest included.

    Returns:
        list[BookingGuestRead]: The updated guest list
    """
    try:
        return guest_service.add_booking_guest(engine, actor, booking_uid, payload.user_uid)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("booking_guest_add_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/bookings/{booking_uid}/guests/{user_uid}", response_model=list[BookingGuestRead])
def remove_booking_guest(
    booking_uid: str,
    user_uid: str,
    actor: Actor = Depends(get_current_actor),
    engine: Engine = Depends(get_db_engine),
) -> list[BookingGuestRead]:
    """Remove a traveller from the guest list. The primary guest stays."""
    try:
        return guest_service.remove_booking_guest(engine, actor, booking_uid, user_uid)
    except BookingEngineError:
        raise
    except Exception as e:
        logger.exception("booking_guest_remove_failed", booking_uid=booking_uid, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
