"""
Shared fixtures for booking engine tests.

Each test gets its own file-backed SQLite database so threads opened by
concurrency tests see each other's commits. Identity and processor calls are
replaced with plain test doubles.
"""

from __future__ import annotations

import os

# Settings are read at import time; provide safe defaults before any import
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ALLOWED_ORIGINS", "*")
os.environ.setdefault("LOG_LEVEL", "INFO")

import threading
import time
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Generator, Optional
from uuid import uuid4

import pytest
from sqlalchemy import insert
from sqlalchemy.engine import Engine

from villa_booking.db.engine import build_engine
from villa_booking.models.base import Base
from villa_booking.models.villas import Villa
from villa_booking.schemas.actors import Actor, UserType
from villa_booking.services.settlement import ChargeResult, ChargeStatus, RefundResult
from villa_booking.utils.datetime import utc_now, utc_today

HOST_UID = "host-1"


def days(offset: int) -> date:
    """Date relative to today, so tests never book in the past."""
    return utc_today() + timedelta(days=offset)


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Fresh SQLite database with every booking table created."""
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'booking.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def make_villa(db_engine: Engine) -> Callable[..., str]:
    """
    Factory inserting a villa and returning its villa_uid.

    Defaults: live, instant book, 4 guests, 1-30 nights, 300/night, no cleaning fee.
    """

    def _make_villa(**overrides: Any) -> str:
        now = utc_now()
        row: dict[str, Any] = {
            "villa_uid": f"villa-{uuid4().hex[:8]}",
            "host_uid": HOST_UID,
            "status": "live",
            "name": "Test Villa",
            "guest_count": 4,
            "min_stay_nights": 1,
            "max_stay_nights": 30,
            "instant_book": True,
            "nightly_rate": Decimal("300.00"),
            "cleaning_fee": Decimal("0.00"),
            "currency": "USD",
            "is_deleted": False,
            "created_at": now,
            "updated_at": now,
        }
        row.update(overrides)
        with db_engine.begin() as conn:
            conn.execute(insert(Villa).values(**row))
        return str(row["villa_uid"])

    return _make_villa


@pytest.fixture
def guest() -> Actor:
    return Actor(user_uid="guest-1", user_type=UserType.GUEST, is_email_verified=True)


@pytest.fixture
def other_guest() -> Actor:
    return Actor(user_uid="guest-2", user_type=UserType.GUEST, is_email_verified=True)


@pytest.fixture
def host() -> Actor:
    return Actor(user_uid=HOST_UID, user_type=UserType.HOST, is_email_verified=True)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_uid="admin-1", user_type=UserType.ADMIN, is_email_verified=True)


class FakeSettlement:
    """
    In-memory settlement adapter recording every call.

    Args:
        charge_status: Status returned by charge()
        retrieve_status: Status returned by retrieve_charge()
        refund_status: Status returned by refund()
        charge_error: Exception raised by charge() instead of returning
        refund_error: Exception raised by refund() instead of returning
        delay: Seconds charge() sleeps before answering
    """

    def __init__(
        self,
        charge_status: ChargeStatus = ChargeStatus.SUCCEEDED,
        retrieve_status: ChargeStatus = ChargeStatus.SUCCEEDED,
        refund_status: ChargeStatus = ChargeStatus.SUCCEEDED,
        charge_error: Optional[Exception] = None,
        refund_error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.charge_status = charge_status
        self.retrieve_status = retrieve_status
        self.refund_status = refund_status
        self.charge_error = charge_error
        self.refund_error = refund_error
        self.delay = delay
        self.charges: list[tuple[str, str, Decimal, str]] = []
        self.refunds: list[tuple[str, Decimal]] = []
        self.retrievals: list[str] = []
        self._lock = threading.Lock()

    def charge(self, booking_uid: str, method: str, amount: Decimal, currency: str) -> ChargeResult:
        with self._lock:
            self.charges.append((booking_uid, method, amount, currency))
            number = len(self.charges)
        if self.delay:
            time.sleep(self.delay)
        if self.charge_error is not None:
            raise self.charge_error
        return ChargeResult(status=self.charge_status, transaction_id=f"txn_{number}")

    def refund(self, transaction_id: str, amount: Decimal) -> RefundResult:
        with self._lock:
            self.refunds.append((transaction_id, amount))
        if self.refund_error is not None:
            raise self.refund_error
        return RefundResult(status=self.refund_status)

    def retrieve_charge(self, booking_uid: str) -> ChargeResult:
        with self._lock:
            self.retrievals.append(booking_uid)
        return ChargeResult(status=self.retrieve_status, transaction_id="txn_reconciled")


@pytest.fixture
def settlement() -> FakeSettlement:
    return FakeSettlement()
