"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP villa_booking_operations_total Total booking engine operations by outcome
        # TYPE villa_booking_operations_total counter
        villa_booking_operations_total{operation="create",outcome="success"} 42.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Expose metrics in Prometheus text format for scraping."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
