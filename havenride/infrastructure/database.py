"""
Async SQLAlchemy engine and session factory.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.  Every
dispatch operation opens its own session from ``async_session_factory`` so
that the conditional status update is committed before side effects run.
Waiting for a pooled connection and each statement are both bounded by
``db_timeout_seconds``.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from havenride.config import settings


def engine_options() -> dict:
    """Pool sizing plus the bounds on every store interaction."""
    return {
        "echo": False,
        "pool_size": 20,
        "max_overflow": 10,
        "pool_timeout": settings.db_timeout_seconds,
        "connect_args": {"command_timeout": settings.db_timeout_seconds},
    }


engine = create_async_engine(settings.database_url, **engine_options())

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
