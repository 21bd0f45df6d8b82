"""Async SQLAlchemy 2.0 database setup.

The engine (and its connection pool) is a process-wide resource created on
first use. Sessions are acquired per unit of work and always released,
including on failure and cancellation.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache

from sqlalchemy import DateTime, func
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    pass


class TimestampMixin:
    """created_at/updated_at maintained by PostgreSQL.

    `onupdate` only covers UPDATE statements; ON CONFLICT DO UPDATE branches
    must set updated_at themselves.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


@lru_cache
def get_engine() -> AsyncEngine:
    """Create the process-wide async engine from settings."""
    settings = get_settings()
    engine: AsyncEngine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    return engine


@lru_cache
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Create the async session maker bound to the shared engine."""
    engine = get_engine()
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def dispose_engine() -> None:
    """Close pooled connections and drop the cached engine."""
    if get_engine.cache_info().currsize == 0:
        return

    await get_engine().dispose()
    get_session_maker.cache_clear()
    get_engine.cache_clear()
    logger.info("database.engine_disposed")


@asynccontextmanager
async def transaction(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Run the body inside a single database transaction.

    Commits when the body exits normally and rolls back on any exception,
    including cancellation. The session is closed on every exit path.

    Args:
        session_maker: Session factory to use (defaults to the shared one).

    Yields:
        AsyncSession with an open transaction.
    """
    maker = session_maker or get_session_maker()
    async with maker() as session, session.begin():
        yield session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency yielding a session for read endpoints.

    Imports never use it: they go through `transaction()` so that the claim
    and every chunk share one commit.
    """
    async with get_session_maker()() as session:
        yield session
