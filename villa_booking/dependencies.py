"""
FastAPI dependency injection providers.

This module contains dependency providers for FastAPI routes, enabling better
testability through dependency injection and following FastAPI best practices.

Dependencies can be overridden in tests using app.dependency_overrides, making
it easy to inject a SQLite engine, a fake settlement adapter or a fixed actor.
"""

from __future__ import annotations

import threading
from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine

from villa_booking.db.engine import engine
from villa_booking.network.settlement_client import HttpSettlementAdapter
from villa_booking.schemas.actors import Actor
from villa_booking.services.settlement import SettlementAdapter

_adapter: Optional[HttpSettlementAdapter] = None
_adapter_lock = threading.Lock()

TRUTHY = {"1", "true", "yes"}


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
    """
    yield engine


def get_settlement_adapter() -> SettlementAdapter:
    """
    Provide the settlement processor client, created once per process.

    Returns:
        SettlementAdapter: HTTP adapter configured from SETTLEMENT_* settings
    """
    global _adapter
    with _adapter_lock:
        if _adapter is None:
            _adapter = HttpSettlementAdapter()
        return _adapter


def get_current_actor(
    x_user_uid: Optional[str] = Header(None),
    x_user_type: Optional[str] = Header(None),
    x_user_email_verified: Optional[str] = Header(None),
) -> Actor:
    """
    Build the authenticated actor from headers set by the upstream gateway.

    The gateway authenticates the caller; this service only authorizes.

    Args:
        x_user_uid: X-User-Uid header
        x_user_type: X-User-Type header (guest, host or admin)
        x_user_email_verified: X-User-Email-Verified header ("true"/"false")

    Returns:
        Actor: The caller

    Raises:
        HTTPException: 401 if identity headers are missing or invalid
    """
    if not x_user_uid or not x_user_type:
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        return Actor(
            user_uid=x_user_uid,
            user_type=x_user_type.lower(),
            is_email_verified=(x_user_email_verified or "").lower() in TRUTHY,
        )
    except PydanticValidationError:
        raise HTTPException(status_code=401, detail="Invalid identity headers")


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Dependency for admin-only routes."""
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return actor
