"""
Prometheus metrics for monitoring booking operations, settlement calls and locking.

This module defines all Prometheus metrics used throughout the application for
observability and monitoring. Metrics are exposed via the /metrics endpoint for
scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., total bookings created)
    - Histogram: Observations bucketed by value (e.g., settlement latency)

Example:
    >>> from villa_booking.metrics import booking_operations
    >>> booking_operations.labels(operation="create", outcome="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Booking Metrics
# =============================================================================

booking_operations = Counter(
    "villa_booking_operations_total",
    "Total booking engine operations by outcome",
    ["operation", "outcome"],
)
"""
Counter for engine operations.

Labels:
    operation: create, approve, reject, cancel, pay, reconcile, complete, review
    outcome: success or the error code (conflict, forbidden, invalid_state, ...)
"""

booking_transitions = Counter(
    "villa_booking_transitions_total",
    "Booking status transitions applied to the ledger",
    ["from_status", "to_status"],
)
"""
Counter for ledger transitions.

Labels:
    from_status: Status before the transition ("none" for creation)
    to_status: Status after the transition
"""

availability_conflicts = Counter(
    "villa_booking_availability_conflicts_total",
    "Booking attempts refused because the requested dates were taken",
)

# =============================================================================
# Settlement Metrics
# =============================================================================

settlement_calls = Counter(
    "villa_booking_settlement_calls_total",
    "Calls made to the settlement processor",
    ["operation", "status"],
)
"""
Counter for settlement calls.

Labels:
    operation: charge, refund, retrieve_charge
    status: succeeded, failed, pending, error
"""

settlement_latency = Histogram(
    "villa_booking_settlement_latency_seconds",
    "Settlement processor call latency in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, float("inf")),
)

# =============================================================================
# Coordination Metrics
# =============================================================================

villa_lock_wait = Histogram(
    "villa_booking_lock_wait_seconds",
    "Time spent waiting for the per-villa exclusive section",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, float("inf")),
)

sweep_results = Counter(
    "villa_booking_sweep_results_total",
    "Bookings processed by the completion sweep",
    ["outcome"],
)
"""
Counter for completion sweep results.

Labels:
    outcome: completed, failed, skipped
"""
