"""Feature-specific test fixtures for contacts module."""

from collections.abc import Sequence
from typing import Any

import pytest

from app.features.contacts.schemas import ImportRecord


class FakeContactStore:
    """In-memory contact store keyed by email.

    Emails listed in `racing_emails` are treated as inserted by another
    transaction after the existence read, so write_chunk leaves them out
    of the returned set.
    """

    def __init__(
        self,
        existing: dict[str, ImportRecord] | None = None,
        racing_emails: set[str] | None = None,
    ) -> None:
        self.contacts: dict[str, ImportRecord] = dict(existing or {})
        self.racing_emails = racing_emails or set()
        self.lookups: list[set[str]] = []
        self.writes: list[list[str]] = []

    async def find_existing_emails(self, db: Any, emails: set[str]) -> set[str]:
        self.lookups.append(set(emails))
        return {email for email in emails if email in self.contacts}

    async def write_chunk(
        self,
        db: Any,
        records: Sequence[ImportRecord],
        existing_emails: set[str],
    ) -> set[str]:
        self.writes.append([r.email for r in records])
        written: set[str] = set()
        for record in records:
            if record.email in self.racing_emails:
                continue
            self.contacts[record.email] = record
            written.add(record.email)
        return written


@pytest.fixture
def alice() -> ImportRecord:
    """Create a sample record."""
    return ImportRecord(name="Alice", email="alice@x.com", metadata={"tier": "gold"})


@pytest.fixture
def bob() -> ImportRecord:
    """Create a second sample record."""
    return ImportRecord(name="Bob", email="bob@x.com")


@pytest.fixture
def fake_store() -> FakeContactStore:
    """Create an empty in-memory store."""
    return FakeContactStore()


@pytest.fixture
def make_records():
    """Factory for numbered records."""

    def _make(count: int, prefix: str = "user") -> list[ImportRecord]:
        return [
            ImportRecord(name=f"{prefix} {i}", email=f"{prefix}{i}@example.com")
            for i in range(count)
        ]

    return _make


@pytest.fixture
def racing_store() -> FakeContactStore:
    """Create a store where bob@x.com is inserted concurrently mid-batch."""
    return FakeContactStore(racing_emails={"bob@x.com"})
