"""
Integration tests for the booking HTTP API against SQLite.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from conftest import HOST_UID, FakeSettlement, days
from villa_booking.dependencies import get_db_engine, get_settlement_adapter
from villa_booking.main import app
from villa_booking.services.settlement import ChargeStatus

GUEST = {"X-User-Uid": "guest-1", "X-User-Type": "guest", "X-User-Email-Verified": "true"}
OTHER_GUEST = {"X-User-Uid": "guest-2", "X-User-Type": "guest", "X-User-Email-Verified": "true"}
HOST = {"X-User-Uid": HOST_UID, "X-User-Type": "host", "X-User-Email-Verified": "true"}
ADMIN = {"X-User-Uid": "admin-1", "X-User-Type": "admin", "X-User-Email-Verified": "true"}


@pytest.fixture
def client(
    db_engine: Engine, settlement: FakeSettlement
) -> Generator[TestClient, None, None]:
    """TestClient wired to the per-test database and fake processor."""
    app.dependency_overrides[get_db_engine] = lambda: db_engine
    app.dependency_overrides[get_settlement_adapter] = lambda: settlement
    yield TestClient(app)
    app.dependency_overrides.clear()


def book(client: TestClient, villa_uid: str, start: int, end: int, headers: dict = GUEST):
    return client.post(
        "/api/v1/bookings",
        json={
            "villa_uid": villa_uid,
            "check_in": days(start).isoformat(),
            "check_out": days(end).isoformat(),
            "guest_count": 2,
        },
        headers=headers,
    )


@pytest.mark.integration
def test_create_booking_returns_201_with_prices(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    villa_uid = make_villa(cleaning_fee=Decimal("50"))

    response = book(client, villa_uid, 5, 7)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "confirmed"
    assert data["guest_uid"] == "guest-1"
    assert data["host_uid"] == HOST_UID
    assert Decimal(data["accommodation_total"]) == Decimal("600")
    assert Decimal(data["cleaning_fee"]) == Decimal("50")
    assert Decimal(data["service_fee"]) == Decimal("60")
    assert "X-Request-ID" in response.headers


@pytest.mark.integration
def test_missing_identity_headers_is_401(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    response = book(client, make_villa(), 5, 7, headers={})

    assert response.status_code == 401


@pytest.mark.integration
def test_unknown_user_type_is_401(client: TestClient, make_villa: Callable[..., str]) -> None:
    response = book(
        client, make_villa(), 5, 7, headers={"X-User-Uid": "u-1", "X-User-Type": "robot"}
    )

    assert response.status_code == 401


@pytest.mark.integration
def test_overlapping_booking_is_409_conflict(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    villa_uid = make_villa()
    assert book(client, villa_uid, 5, 8).status_code == 201

    response = book(client, villa_uid, 7, 9, headers=OTHER_GUEST)

    assert response.status_code == 409
    assert response.json() == {
        "error": "Villa is unavailable for the selected dates",
        "code": "conflict",
        "retryable": False,
    }


@pytest.mark.integration
def test_back_to_back_booking_is_accepted(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    villa_uid = make_villa()
    assert book(client, villa_uid, 5, 8).status_code == 201

    assert book(client, villa_uid, 8, 10, headers=OTHER_GUEST).status_code == 201


@pytest.mark.integration
def test_invalid_range_is_400(client: TestClient, make_villa: Callable[..., str]) -> None:
    response = book(client, make_villa(), 7, 7)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"


@pytest.mark.integration
def test_unverified_guest_is_403(client: TestClient, make_villa: Callable[..., str]) -> None:
    headers = {**GUEST, "X-User-Email-Verified": "false"}

    response = book(client, make_villa(), 5, 7, headers=headers)

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


@pytest.mark.integration
def test_unknown_villa_is_404(client: TestClient) -> None:
    response = book(client, "villa-missing", 5, 7)

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.integration
def test_availability_endpoint_quotes_and_reports_taken_dates(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    villa_uid = make_villa()
    book(client, villa_uid, 5, 8)
    params = {"check_in": days(3).isoformat(), "check_out": days(6).isoformat()}

    response = client.get(f"/api/v1/villas/{villa_uid}/availability", params=params)

    assert response.status_code == 200
    data = response.json()
    assert data["available"] is False
    assert len(data["nights"]) == 3
    assert Decimal(data["total"]) == Decimal("900")


@pytest.mark.integration
def test_host_approves_pending_booking(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    booking_uid = book(client, make_villa(instant_book=False), 5, 7).json()["booking_uid"]

    denied = client.post(f"/api/v1/bookings/{booking_uid}/approve", headers=GUEST)
    approved = client.post(f"/api/v1/bookings/{booking_uid}/approve", headers=HOST)
    again = client.post(f"/api/v1/bookings/{booking_uid}/approve", headers=HOST)

    assert denied.status_code == 403
    assert approved.status_code == 200
    assert approved.json()["status"] == "confirmed"
    assert again.status_code == 409
    assert again.json()["code"] == "invalid_state"


@pytest.mark.integration
def test_pay_then_cancel_refunds(
    client: TestClient, make_villa: Callable[..., str], settlement: FakeSettlement
) -> None:
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]

    paid = client.post(
        f"/api/v1/bookings/{booking_uid}/pay", json={"payment_method": "card"}, headers=GUEST
    )
    cancelled = client.post(
        f"/api/v1/bookings/{booking_uid}/cancel", json={"reason": "Change of plans"}, headers=GUEST
    )
    payments = client.get(f"/api/v1/bookings/{booking_uid}/payments", headers=GUEST)

    assert paid.status_code == 200
    assert paid.json()["booking"]["status"] == "paid"
    assert paid.json()["payment"]["status"] == "paid"
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancellation_reason"] == "Change of plans"
    assert [p["status"] for p in payments.json()] == ["refunded"]
    assert len(settlement.refunds) == 1


@pytest.mark.integration
def test_declined_payment_is_503_with_decline_code(
    client: TestClient, make_villa: Callable[..., str], settlement: FakeSettlement
) -> None:
    settlement.charge_status = ChargeStatus.FAILED
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]

    response = client.post(
        f"/api/v1/bookings/{booking_uid}/pay", json={"payment_method": "card"}, headers=GUEST
    )

    assert response.status_code == 503
    assert response.json()["code"] == "payment_declined"
    assert response.json()["retryable"] is True


@pytest.mark.integration
def test_cancel_without_body(client: TestClient, make_villa: Callable[..., str]) -> None:
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]

    response = client.post(f"/api/v1/bookings/{booking_uid}/cancel", headers=HOST)

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.integration
def test_search_is_scoped_to_caller(client: TestClient, make_villa: Callable[..., str]) -> None:
    villa_uid = make_villa()
    book(client, villa_uid, 5, 7)
    book(client, villa_uid, 10, 12, headers=OTHER_GUEST)

    mine = client.get("/api/v1/bookings", headers=GUEST)
    hosted = client.get("/api/v1/bookings", params={"sort_by": "check_in"}, headers=HOST)
    confirmed = client.get("/api/v1/bookings", params={"status": "confirmed"}, headers=ADMIN)

    assert [b["guest_uid"] for b in mine.json()] == ["guest-1"]
    assert [b["guest_uid"] for b in hosted.json()] == ["guest-2", "guest-1"]
    assert len(confirmed.json()) == 2


@pytest.mark.integration
def test_search_rejects_out_of_range_limit(client: TestClient) -> None:
    response = client.get("/api/v1/bookings", params={"limit": 500}, headers=ADMIN)

    assert response.status_code == 422


@pytest.mark.integration
def test_get_booking_hidden_from_other_guest(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]

    assert client.get(f"/api/v1/bookings/{booking_uid}", headers=GUEST).status_code == 200
    assert client.get(f"/api/v1/bookings/{booking_uid}", headers=OTHER_GUEST).status_code == 403


@pytest.mark.integration
def test_complete_requires_admin(client: TestClient, make_villa: Callable[..., str]) -> None:
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]

    response = client.post(f"/api/v1/bookings/{booking_uid}/complete", headers=HOST)

    assert response.status_code == 403


@pytest.mark.integration
def test_host_blocks_calendar_and_guest_cannot(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    villa_uid = make_villa()
    body = {
        "start_date": days(20).isoformat(),
        "end_date": days(22).isoformat(),
        "is_available": False,
    }

    denied = client.put(f"/api/v1/villas/{villa_uid}/calendar", json=body, headers=GUEST)
    blocked = client.put(f"/api/v1/villas/{villa_uid}/calendar", json=body, headers=HOST)

    assert denied.status_code == 403
    assert blocked.status_code == 200
    assert [e["is_available"] for e in blocked.json()] == [False, False]
    assert book(client, villa_uid, 21, 23).status_code == 409


@pytest.mark.integration
def test_host_adds_pricing_rule(client: TestClient, make_villa: Callable[..., str]) -> None:
    villa_uid = make_villa()
    body = {
        "start_date": days(30).isoformat(),
        "end_date": days(35).isoformat(),
        "nightly_rate": "450.00",
    }

    created = client.post(f"/api/v1/villas/{villa_uid}/pricing-rules", json=body, headers=HOST)
    listed = client.get(f"/api/v1/villas/{villa_uid}/pricing-rules")

    assert created.status_code == 201
    assert Decimal(created.json()["nightly_rate"]) == Decimal("450")
    assert [r["rule_id"] for r in listed.json()] == [created.json()["rule_id"]]


@pytest.mark.integration
def test_review_eligibility_before_completion(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]

    eligibility = client.get(
        f"/api/v1/bookings/{booking_uid}/reviews/eligibility",
        params={"direction": "guest_on_villa"},
        headers=GUEST,
    )
    review = client.post(
        f"/api/v1/bookings/{booking_uid}/reviews",
        json={"direction": "guest_on_villa", "rating": 5},
        headers=GUEST,
    )

    assert eligibility.status_code == 200
    assert eligibility.json()["eligible"] is False
    assert review.status_code == 409
    assert review.json()["code"] == "invalid_state"


@pytest.mark.integration
def test_review_eligibility_hidden_from_other_guest(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]

    response = client.get(
        f"/api/v1/bookings/{booking_uid}/reviews/eligibility",
        params={"direction": "guest_on_villa"},
        headers=OTHER_GUEST,
    )

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


@pytest.mark.integration
def test_search_filters_by_instant_book(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    book(client, make_villa(instant_book=True), 5, 7)
    book(client, make_villa(instant_book=False), 5, 7)

    instant = client.get("/api/v1/bookings", params={"instant_book": "true"}, headers=GUEST)
    requested = client.get("/api/v1/bookings", params={"instant_book": "false"}, headers=GUEST)

    assert [b["status"] for b in instant.json()] == ["confirmed"]
    assert [b["status"] for b in requested.json()] == ["pending"]


@pytest.mark.integration
def test_payments_filtered_by_status(
    client: TestClient, make_villa: Callable[..., str], settlement: FakeSettlement
) -> None:
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]
    pay_url = f"/api/v1/bookings/{booking_uid}/pay"
    settlement.charge_status = ChargeStatus.FAILED
    client.post(pay_url, json={"payment_method": "card"}, headers=GUEST)
    settlement.charge_status = ChargeStatus.SUCCEEDED
    client.post(pay_url, json={"payment_method": "card"}, headers=GUEST)

    paid = client.get(
        f"/api/v1/bookings/{booking_uid}/payments",
        params={"payment_status": "paid"},
        headers=GUEST,
    )
    everything = client.get(f"/api/v1/bookings/{booking_uid}/payments", headers=GUEST)
    bad_sort = client.get(
        f"/api/v1/bookings/{booking_uid}/payments", params={"sort_by": "amount"}, headers=GUEST
    )

    assert [p["status"] for p in paid.json()] == ["paid"]
    assert [p["status"] for p in everything.json()] == ["paid", "failed"]
    assert bad_sort.status_code == 422


@pytest.mark.integration
def test_guest_manages_travellers_on_booking(
    client: TestClient, make_villa: Callable[..., str]
) -> None:
    booking_uid = book(client, make_villa(), 5, 7).json()["booking_uid"]
    url = f"/api/v1/bookings/{booking_uid}/guests"

    added = client.post(url, json={"user_uid": "friend-1"}, headers=GUEST)
    full = client.post(url, json={"user_uid": "friend-2"}, headers=GUEST)
    stranger = client.post(url, json={"user_uid": "friend-3"}, headers=OTHER_GUEST)
    listed = client.get(url, headers=HOST)
    primary = client.delete(f"{url}/guest-1", headers=GUEST)
    removed = client.delete(f"{url}/friend-1", headers=GUEST)

    assert added.status_code == 201
    assert [(g["user_uid"], g["is_primary"]) for g in added.json()] == [
        ("guest-1", True),
        ("friend-1", False),
    ]
    assert full.status_code == 400
    assert stranger.status_code == 403
    assert [g["user_uid"] for g in listed.json()] == ["guest-1", "friend-1"]
    assert primary.status_code == 400
    assert removed.status_code == 200
    assert [g["user_uid"] for g in removed.json()] == ["guest-1"]
