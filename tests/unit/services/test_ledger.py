"""
Unit tests for the booking status machine, authorization helpers and fee math.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from villa_booking.errors import PermissionDeniedError, StateError
from villa_booking.schemas.actors import Actor, UserType
from villa_booking.schemas.bookings import BookingStatus
from villa_booking.services.ledger import (
    TRANSITIONS,
    compute_charges,
    compute_payout,
    ensure_transition,
    guest_total,
    require_guest,
    require_host,
    require_party_or_admin,
    require_villa_manager,
)

BOOKING = {"guest_uid": "guest-1", "host_uid": "host-1"}


def actor(uid: str, user_type: UserType = UserType.GUEST) -> Actor:
    return Actor(user_uid=uid, user_type=user_type, is_email_verified=True)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current, target",
    [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingStatus.REJECTED),
        (BookingStatus.PENDING, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.PAID),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
        (BookingStatus.PAID, BookingStatus.COMPLETED),
        (BookingStatus.PAID, BookingStatus.CANCELLED),
    ],
)
def test_allowed_transitions(current: BookingStatus, target: BookingStatus) -> None:
    assert ensure_transition(current.value, target) == current


@pytest.mark.unit
@pytest.mark.parametrize(
    "current, target",
    [
        (BookingStatus.CONFIRMED, BookingStatus.CONFIRMED),
        (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
        (BookingStatus.PENDING, BookingStatus.PAID),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
        (BookingStatus.REJECTED, BookingStatus.CONFIRMED),
        (BookingStatus.CANCELLED, BookingStatus.CANCELLED),
    ],
)
def test_forbidden_transitions_raise_state_error(
    current: BookingStatus, target: BookingStatus
) -> None:
    with pytest.raises(StateError):
        ensure_transition(current, target)


@pytest.mark.unit
def test_terminal_statuses_have_no_exits() -> None:
    for status in (BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED):
        assert TRANSITIONS[status] == frozenset()


@pytest.mark.unit
def test_compute_charges_derives_fees_from_accommodation_total() -> None:
    charges = compute_charges(
        Decimal("1400"),
        Decimal("100"),
        4,
        service_fee_percent=Decimal("10"),
        tax_percent=Decimal("5"),
    )

    assert charges.accommodation_total == Decimal("1400.00")
    assert charges.price_nightly == Decimal("350.00")
    assert charges.service_fee == Decimal("140.00")
    assert charges.tax_fee == Decimal("75.00")
    assert charges.payout_amount == Decimal("1360.00")
    assert charges.guest_total == Decimal("1575.00")


@pytest.mark.unit
def test_compute_charges_rounds_to_cents() -> None:
    charges = compute_charges(
        Decimal("1000"),
        Decimal("0"),
        3,
        service_fee_percent=Decimal("12.5"),
        tax_percent=Decimal("0"),
    )

    assert charges.price_nightly == Decimal("333.33")
    assert charges.service_fee == Decimal("125.00")
    assert charges.payout_amount == Decimal("875.00")


@pytest.mark.unit
def test_compute_payout_and_guest_total() -> None:
    assert compute_payout(Decimal("900"), Decimal("50"), Decimal("90")) == Decimal("860.00")
    row = {
        "accommodation_total": Decimal("900"),
        "cleaning_fee": Decimal("50"),
        "tax_fee": Decimal("19"),
    }
    assert guest_total(row) == Decimal("969.00")


@pytest.mark.unit
def test_require_host_refuses_guest_and_admin() -> None:
    require_host(actor("host-1", UserType.HOST), BOOKING, "approve")

    with pytest.raises(PermissionDeniedError):
        require_host(actor("guest-1"), BOOKING, "approve")
    with pytest.raises(PermissionDeniedError):
        require_host(actor("admin-1", UserType.ADMIN), BOOKING, "approve")


@pytest.mark.unit
def test_require_guest_refuses_host() -> None:
    require_guest(actor("guest-1"), BOOKING, "pay for")

    with pytest.raises(PermissionDeniedError):
        require_guest(actor("host-1", UserType.HOST), BOOKING, "pay for")


@pytest.mark.unit
def test_require_party_or_admin() -> None:
    require_party_or_admin(actor("guest-1"), BOOKING, "cancel")
    require_party_or_admin(actor("host-1", UserType.HOST), BOOKING, "cancel")
    require_party_or_admin(actor("admin-9", UserType.ADMIN), BOOKING, "cancel")

    with pytest.raises(PermissionDeniedError):
        require_party_or_admin(actor("stranger"), BOOKING, "cancel")


@pytest.mark.unit
def test_require_villa_manager() -> None:
    villa = {"host_uid": "host-1"}
    require_villa_manager(actor("host-1", UserType.HOST), villa)
    require_villa_manager(actor("admin-1", UserType.ADMIN), villa)

    with pytest.raises(PermissionDeniedError):
        require_villa_manager(actor("host-2", UserType.HOST), villa)
