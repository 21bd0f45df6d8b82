"""Test fixtures for jobs module."""

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.features.jobs.models import JobStatus


def scalar_result(value):
    """Build a mock Result whose scalar_one_or_none() returns value."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


@pytest.fixture
def mock_session() -> AsyncMock:
    """Create a mock async session."""
    return AsyncMock()


@pytest.fixture
def make_job_row():
    """Factory for stored import_job rows."""

    def _make(
        status: JobStatus,
        summary: dict | None = None,
        job_id: str = "a" * 32,
        token: str = "tok-1",
        total: int = 2,
    ) -> SimpleNamespace:
        now = datetime(2026, 1, 1, tzinfo=UTC)
        return SimpleNamespace(
            job_id=job_id,
            token=token,
            status=status.value,
            total=total,
            summary=summary,
            error_type="IntegrityError" if status is JobStatus.FAILED else None,
            completed_at=None if status is JobStatus.PENDING else now,
            created_at=now,
            updated_at=now,
        )

    return _make


@pytest.fixture
def results():
    """Expose the scalar_result helper to tests."""
    return scalar_result
