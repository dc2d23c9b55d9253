"""
Settlement processor boundary.

The engine never talks to a payment processor directly; it calls an object
satisfying SettlementAdapter. Calls may block, fail or time out. The engine
does not retry them: every exception raised by an adapter is surfaced to the
caller as a retryable DependencyError with the booking left unchanged.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Protocol, TypeVar

import structlog

from villa_booking.errors import DependencyError
from villa_booking.metrics import settlement_calls, settlement_latency

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ChargeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True)
class ChargeResult:
    status: ChargeStatus
    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class RefundResult:
    status: ChargeStatus


class SettlementAdapter(Protocol):
    """Operations the engine needs from a payment processor."""

    def charge(
        self, booking_uid: str, method: str, amount: Decimal, currency: str
    ) -> ChargeResult: ...

    def refund(self, transaction_id: str, amount: Decimal) -> RefundResult: ...

    def retrieve_charge(self, booking_uid: str) -> ChargeResult: ...


def call_settlement(operation: str, booking_uid: str, func: Callable[[], T]) -> T:
    """
    Invoke one adapter call, recording metrics and translating failures.

    Args:
        operation: charge, refund or retrieve_charge (metric label)
        booking_uid: Booking the call is for (log context)
        func: Zero-argument callable performing the adapter call

    Returns:
        Whatever the adapter returned

    Raises:
        DependencyError: If the adapter raised for any reason
    """
    start_time = time.time()
    try:
        result = func()
    except Exception as e:
        settlement_calls.labels(operation=operation, status="error").inc()
        logger.exception("settlement_call_failed", operation=operation, booking_uid=booking_uid)
        raise DependencyError(
            f"Payment processor unavailable during {operation}, please try again"
        ) from e
    finally:
        settlement_latency.labels(operation=operation).observe(time.time() - start_time)

    status = getattr(result, "status", None)
    settlement_calls.labels(
        operation=operation, status=status.value if isinstance(status, Enum) else "unknown"
    ).inc()
    return result
