"""Contact store access and the batch upsert engine.

The engine classifies each record as insert or update by reading which
emails already exist inside the caller's transaction, then writes the whole
chunk with a single INSERT ... ON CONFLICT statement. The conflict branch is
restricted to the emails that were read as existing, so an email inserted by
a concurrent transaction after the read is not silently turned into an
update: it comes back missing from RETURNING and the chunk fails.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError
from app.core.logging import get_logger
from app.features.contacts.models import Contact
from app.features.contacts.schemas import ImportRecord
from app.shared.schemas import PaginationParams

logger = get_logger(__name__)


@runtime_checkable
class ContactStoreProtocol(Protocol):
    """Protocol for the target store used by the upsert engine."""

    async def find_existing_emails(self, db: AsyncSession, emails: set[str]) -> set[str]:
        """Return the subset of emails that already have a contact."""
        ...

    async def write_chunk(
        self,
        db: AsyncSession,
        records: Sequence[ImportRecord],
        existing_emails: set[str],
    ) -> set[str]:
        """Insert new and overwrite existing contacts; return written emails."""
        ...


class ContactStore:
    """Reads and writes the contact table."""

    async def find_existing_emails(self, db: AsyncSession, emails: set[str]) -> set[str]:
        """Return the subset of emails already present.

        Args:
            db: Async database session (inside the import transaction).
            emails: Emails to look up.

        Returns:
            Emails that have a stored contact.
        """
        if not emails:
            return set()

        stmt = select(Contact.email).where(Contact.email.in_(sorted(emails)))
        result = await db.execute(stmt)
        return {row.email for row in result}

    async def write_chunk(
        self,
        db: AsyncSession,
        records: Sequence[ImportRecord],
        existing_emails: set[str],
    ) -> set[str]:
        """Write one chunk with a single set-based statement.

        New emails are inserted. Emails in `existing_emails` take the
        conflict branch and get name/meta/updated_at overwritten; id and
        created_at are left alone.

        Args:
            db: Async database session (inside the import transaction).
            records: Records with distinct emails.
            existing_emails: Emails read as existing earlier in this transaction.

        Returns:
            Emails of the rows the statement inserted or updated.
        """
        if not records:
            return set()

        rows: list[dict[str, Any]] = [
            {"name": r.name, "email": r.email, "meta": r.metadata} for r in records
        ]

        insert_stmt = pg_insert(Contact).values(rows)
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["email"],
            set_={
                "name": insert_stmt.excluded.name,
                "meta": insert_stmt.excluded.meta,
                "updated_at": func.now(),
            },
            where=Contact.email.in_(sorted(existing_emails)),
        ).returning(Contact.email)

        result = await db.execute(upsert_stmt)
        return {row.email for row in result}

    async def get_contact(self, db: AsyncSession, contact_id: int) -> Contact | None:
        """Fetch one contact by primary key."""
        result = await db.execute(select(Contact).where(Contact.id == contact_id))
        return result.scalar_one_or_none()

    async def list_contacts(
        self,
        db: AsyncSession,
        pagination: PaginationParams,
        email: str | None = None,
    ) -> tuple[list[Contact], int]:
        """List contacts ordered by ID.

        Args:
            db: Async database session.
            pagination: Page and page size.
            email: Exact email filter (optional).

        Returns:
            Tuple of (contacts on this page, total matching count).
        """
        stmt = select(Contact)
        if email is not None:
            stmt = stmt.where(Contact.email == email)

        count_result = await db.execute(select(func.count()).select_from(stmt.subquery()))
        total = count_result.scalar_one()

        stmt = stmt.order_by(Contact.id).offset(pagination.offset).limit(pagination.limit)
        result = await db.execute(stmt)
        return list(result.scalars().all()), total


@dataclass
class UpsertResult:
    """Insert/update counts of a batch upsert."""

    inserted_count: int = 0
    updated_count: int = 0
    chunk_count: int = 0

    @property
    def total(self) -> int:
        return self.inserted_count + self.updated_count


def collapse_duplicate_emails(records: Sequence[ImportRecord]) -> list[ImportRecord]:
    """Keep only the last record submitted for each email.

    Survivors are ordered by the position of their last occurrence.
    """
    latest: dict[str, ImportRecord] = {}
    for record in records:
        latest.pop(record.email, None)
        latest[record.email] = record
    return list(latest.values())


def iter_chunks(records: Sequence[ImportRecord], size: int) -> Iterator[Sequence[ImportRecord]]:
    """Yield consecutive slices of at most `size` records."""
    if size < 1:
        msg = f"Chunk size must be positive, got {size}"
        raise ValueError(msg)
    for start in range(0, len(records), size):
        yield records[start : start + size]


async def upsert_contacts_batch(
    db: AsyncSession,
    records: Sequence[ImportRecord],
    store: ContactStoreProtocol,
    chunk_size: int,
) -> UpsertResult:
    """Upsert a batch of records chunk by chunk in the caller's transaction.

    Duplicate emails are collapsed (last occurrence wins) before any read,
    so counts never include the same email twice. Survivors are written in
    email order, so concurrent imports sharing emails take the row locks on
    uq_contact_email in the same order. Chunks run sequentially.
    Any failure propagates so the caller can roll back the whole batch.

    Args:
        db: Async database session with an open transaction.
        records: Validated import records.
        store: Target store access.
        chunk_size: Maximum records per statement.

    Returns:
        UpsertResult with summed insert/update counts.

    Raises:
        DatabaseError: If a chunk's write did not touch every record,
            which means a concurrent transaction inserted one of its emails.
    """
    distinct = sorted(collapse_duplicate_emails(records), key=lambda r: r.email)
    result = UpsertResult()

    logger.info(
        "contacts.batch_upsert_started",
        received=len(records),
        distinct=len(distinct),
        chunk_size=chunk_size,
    )

    for index, chunk in enumerate(iter_chunks(distinct, chunk_size)):
        emails = {r.email for r in chunk}
        existing = await store.find_existing_emails(db, emails)
        new_emails = emails - existing

        written = await store.write_chunk(db, chunk, existing)
        if written != emails:
            missing = sorted(emails - written)
            raise DatabaseError(
                message="Concurrent write detected on imported contacts",
                details={"chunk_index": index, "missing_emails": missing[:20]},
            )

        result.inserted_count += len(new_emails)
        result.updated_count += len(existing)
        result.chunk_count += 1

        logger.debug(
            "contacts.chunk_upserted",
            chunk_index=index,
            inserted=len(new_emails),
            updated=len(existing),
        )

    logger.info(
        "contacts.batch_upsert_completed",
        inserted=result.inserted_count,
        updated=result.updated_count,
        chunks=result.chunk_count,
    )

    return result
