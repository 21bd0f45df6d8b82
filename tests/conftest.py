"""Shared pytest fixtures for end-to-end import tests.

These fixtures need PostgreSQL at DATABASE_URL (docker-compose up -d).
Each test gets its own engine so no connection outlives its event loop.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import get_settings
from app.core.database import Base, get_db, get_session_maker
from app.features.contacts.models import Contact
from app.features.jobs.models import ImportJob
from app.main import app


@pytest.fixture
async def session_maker():
    """Create a session factory bound to a per-test engine.

    Tables are created if missing; rows written by the test are deleted after.
    """
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    yield maker

    async with maker() as cleanup_session, cleanup_session.begin():
        await cleanup_session.execute(delete(ImportJob))
        await cleanup_session.execute(delete(Contact))

    await engine.dispose()


@pytest.fixture
async def db_session(session_maker):
    """Provide a session for assertions against committed state."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    """Create async HTTP client wired to the per-test engine."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
