"""Feature-specific test fixtures for ingest module."""

from collections.abc import Sequence
from typing import Any

import pytest

from app.features.contacts.schemas import ImportRecord
from app.features.jobs.models import JobStatus
from app.features.jobs.schemas import ImportSummary
from app.features.jobs.service import ClaimOutcome, ClaimResult

JOB_ID = "0123456789abcdef0123456789abcdef"


class FakeTransaction:
    def __init__(self, session: "FakeSession") -> None:
        self.session = session

    async def __aenter__(self) -> "FakeTransaction":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.session.outcome = "rollback" if exc_type else "commit"
        return False


class FakeSession:
    def __init__(self) -> None:
        self.outcome: str | None = None

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    def begin(self) -> FakeTransaction:
        return FakeTransaction(self)


class FakeSessionMaker:
    """Session factory recording how each transaction ended."""

    def __init__(self) -> None:
        self.sessions: list[FakeSession] = []

    def __call__(self) -> FakeSession:
        session = FakeSession()
        self.sessions.append(session)
        return session

    @property
    def outcomes(self) -> list[str | None]:
        return [s.outcome for s in self.sessions]


class FakeLedger:
    """Ledger returning a canned claim and recording transitions."""

    def __init__(self, claim_result: ClaimResult) -> None:
        self.claim_result = claim_result
        self.finalize_error: Exception | None = None
        self.record_failure_error: Exception | None = None
        self.finalized: list[tuple[str, JobStatus, ImportSummary]] = []
        self.failures: list[tuple[str, str, ImportSummary, str]] = []

    async def claim(self, db: Any, token: str, total: int) -> ClaimResult:
        return self.claim_result

    async def finalize(
        self,
        db: Any,
        job_id: str,
        status: JobStatus,
        summary: ImportSummary,
        error_type: str | None = None,
    ) -> bool:
        if self.finalize_error is not None:
            raise self.finalize_error
        self.finalized.append((job_id, status, summary))
        return True

    async def record_failure(
        self,
        db: Any,
        job_id: str,
        token: str,
        summary: ImportSummary,
        error_type: str,
    ) -> bool:
        if self.record_failure_error is not None:
            raise self.record_failure_error
        self.failures.append((job_id, token, summary, error_type))
        return True


class FakeContactStore:
    """In-memory contact store; optionally fails on write."""

    def __init__(self, existing: set[str] | None = None) -> None:
        self.emails: set[str] = set(existing or set())
        self.write_error: Exception | None = None

    async def find_existing_emails(self, db: Any, emails: set[str]) -> set[str]:
        return emails & self.emails

    async def write_chunk(
        self,
        db: Any,
        records: Sequence[ImportRecord],
        existing_emails: set[str],
    ) -> set[str]:
        if self.write_error is not None:
            raise self.write_error
        written = {r.email for r in records}
        self.emails |= written
        return written


@pytest.fixture
def session_maker() -> FakeSessionMaker:
    """Create a fake session factory."""
    return FakeSessionMaker()


@pytest.fixture
def claimed_ledger() -> FakeLedger:
    """Create a ledger that grants the claim."""
    return FakeLedger(ClaimResult(outcome=ClaimOutcome.CLAIMED, job_id=JOB_ID))


@pytest.fixture
def make_ledger():
    """Factory for ledgers with a given claim outcome."""

    def _make(outcome: ClaimOutcome, summary: ImportSummary | None = None) -> FakeLedger:
        return FakeLedger(ClaimResult(outcome=outcome, job_id=JOB_ID, summary=summary))

    return _make


@pytest.fixture
def contact_store() -> FakeContactStore:
    """Create a store already holding alice@x.com."""
    return FakeContactStore(existing={"alice@x.com"})


@pytest.fixture
def sample_records() -> list[ImportRecord]:
    """Create the Alice/Bob batch."""
    return [
        ImportRecord(name="Alice", email="alice@x.com"),
        ImportRecord(name="Bob", email="bob@x.com", metadata={"source": "crm"}),
    ]


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    """Create a raw request body."""
    return {
        "records": [
            {"name": "Alice", "email": "alice@x.com"},
            {"name": "Bob", "email": "bob@x.com", "metadata": {"source": "crm"}},
        ]
    }
