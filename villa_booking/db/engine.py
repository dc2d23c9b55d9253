"""
SQLAlchemy engine singleton with production-ready connection pooling.

This module creates a single engine instance with connection pooling configured
for concurrent booking traffic against PostgreSQL. SQLite URLs are accepted for
local development: the booking schema is mapped onto SQLite's default schema
and connections may be shared across the request thread pool.
"""

from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from villa_booking.config import DATABASE_URL, SCHEMA

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL with the pool settings for its backend.

    Args:
        database_url: SQLAlchemy database URL
        echo: Log emitted SQL (development only)

    Returns:
        Engine: Engine whose connections resolve the booking schema correctly
    """
    if database_url.startswith("sqlite"):
        sqlite_engine = create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
        return sqlite_engine.execution_options(schema_translate_map={SCHEMA: None})

    return create_engine(
        database_url,
        future=True,
        # Connection pool settings
        pool_size=10,  # Number of connections to maintain in the pool
        max_overflow=20,  # Additional connections when pool is exhausted
        pool_pre_ping=True,  # Verify connections before using (detect stale connections)
        pool_recycle=3600,  # Recycle connections after 1 hour
        echo=echo,
    )


engine: Engine = build_engine(DATABASE_URL)


def check_engine_health(target: Optional[Engine] = None) -> bool:
    """
    Check if database engine is healthy and connections are working.

    This function is used by the /ready endpoint to verify database
    connectivity before allowing traffic to the service.

    Args:
        target: Engine to check (defaults to the module engine)

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with (target or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
