"""
Unit tests for metrics endpoint.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from villa_booking.main import app
from villa_booking.metrics import (
    availability_conflicts,
    booking_operations,
    booking_transitions,
    settlement_calls,
    settlement_latency,
    sweep_results,
    villa_lock_wait,
)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.mark.unit
def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.unit
def test_metrics_endpoint_contains_booking_metrics(client: TestClient) -> None:
    booking_operations.labels(operation="create", outcome="success").inc()
    booking_transitions.labels(from_status="none", to_status="confirmed").inc()
    availability_conflicts.inc()
    settlement_calls.labels(operation="charge", status="succeeded").inc()
    settlement_latency.labels(operation="charge").observe(0.2)
    villa_lock_wait.observe(0.001)
    sweep_results.labels(outcome="completed").inc()

    content = client.get("/metrics").text

    assert "villa_booking_operations_total" in content
    assert "villa_booking_transitions_total" in content
    assert "villa_booking_availability_conflicts_total" in content
    assert "villa_booking_settlement_calls_total" in content
    assert "villa_booking_settlement_latency_seconds" in content
    assert "villa_booking_lock_wait_seconds" in content
    assert "villa_booking_sweep_results_total" in content


@pytest.mark.unit
def test_metrics_endpoint_includes_help_and_type_metadata(client: TestClient) -> None:
    content = client.get("/metrics").text

    assert "# HELP" in content
    assert "# TYPE" in content
