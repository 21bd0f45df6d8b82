"""Import orchestration: transaction boundary and ledger lifecycle.

One import request is one database transaction spanning the ledger claim
and every chunk upsert. The ledger outcome is written afterwards in a
separate short transaction, because a rolled-back transaction cannot
record its own failure.

A crash between the main commit and the finalize write leaves the job
pending; those jobs are visible via GET /jobs?status=pending for an
out-of-band reconciliation sweep.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import get_settings
from app.core.database import transaction
from app.core.exceptions import DatabaseError
from app.core.logging import get_logger
from app.features.contacts.schemas import ImportRecord
from app.features.contacts.service import (
    ContactStore,
    ContactStoreProtocol,
    upsert_contacts_batch,
)
from app.features.jobs.models import JobStatus
from app.features.jobs.schemas import ImportSummary
from app.features.jobs.service import ClaimOutcome, ClaimResult, JobLedger

logger = get_logger(__name__)

FAILURE_MESSAGE = "Import failed and was rolled back"


@runtime_checkable
class LedgerProtocol(Protocol):
    """Protocol for the idempotency ledger used by the orchestrator."""

    async def claim(self, db: AsyncSession, token: str, total: int) -> ClaimResult:
        """Atomically reserve the token."""
        ...

    async def finalize(
        self,
        db: AsyncSession,
        job_id: str,
        status: JobStatus,
        summary: ImportSummary,
        error_type: str | None = None,
    ) -> bool:
        """Move a pending job to a terminal state."""
        ...

    async def record_failure(
        self,
        db: AsyncSession,
        job_id: str,
        token: str,
        summary: ImportSummary,
        error_type: str,
    ) -> bool:
        """Mark a token failed after its transaction rolled back."""
        ...


@dataclass(frozen=True)
class ImportOutcome:
    """What happened to one import request."""

    outcome: ClaimOutcome
    job_id: str
    token: str
    summary: ImportSummary | None = None

    @property
    def duplicate(self) -> bool:
        return self.outcome is ClaimOutcome.ALREADY_COMPLETED


class ImportOrchestrator:
    """Drives one idempotent import from claim to finalize."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        ledger: LedgerProtocol | None = None,
        store: ContactStoreProtocol | None = None,
        chunk_size: int | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            session_maker: Factory for the per-request sessions.
            ledger: Ledger access (defaults to JobLedger).
            store: Contact store access (defaults to ContactStore).
            chunk_size: Records per upsert statement (defaults to settings).
        """
        self._session_maker = session_maker
        self._ledger = ledger or JobLedger()
        self._store = store or ContactStore()
        self._chunk_size = chunk_size or get_settings().import_chunk_size

    async def run_import(self, records: Sequence[ImportRecord], token: str) -> ImportOutcome:
        """Apply a batch exactly once per token.

        Args:
            records: Validated, non-empty records.
            token: Idempotency token.

        Returns:
            ImportOutcome. CLAIMED carries the fresh summary,
            ALREADY_COMPLETED the stored one; IN_PROGRESS and
            ALREADY_FAILED wrote nothing.

        Raises:
            DatabaseError: If the batch could not be applied. Nothing was
                written to contacts.
        """
        total = len({r.email for r in records})
        claim: ClaimResult | None = None

        try:
            async with transaction(self._session_maker) as db:
                claim = await self._ledger.claim(db, token, total)
                if not claim.is_claimed:
                    return ImportOutcome(
                        outcome=claim.outcome,
                        job_id=claim.job_id,
                        token=token,
                        summary=claim.summary,
                    )

                upsert = await upsert_contacts_batch(db, records, self._store, self._chunk_size)
        except Exception as e:
            logger.error(
                "ingest.import.transaction_failed",
                job_id=claim.job_id if claim else None,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            if claim is not None and claim.is_claimed:
                await self._record_failure(claim.job_id, token, total, type(e).__name__)
                raise DatabaseError(
                    message=f"{FAILURE_MESSAGE} (job {claim.job_id})",
                    details={"job_id": claim.job_id, "error_type": type(e).__name__},
                ) from e
            raise DatabaseError(
                message=FAILURE_MESSAGE,
                details={"error_type": type(e).__name__},
            ) from e

        summary = ImportSummary(
            total=total,
            inserted=upsert.inserted_count,
            updated=upsert.updated_count,
        )
        await self._finalize_completed(claim.job_id, summary)

        return ImportOutcome(
            outcome=ClaimOutcome.CLAIMED,
            job_id=claim.job_id,
            token=token,
            summary=summary,
        )

    async def _finalize_completed(self, job_id: str, summary: ImportSummary) -> None:
        """Mark the job completed; the contacts are already committed.

        A failure here is logged and left to reconciliation: the batch was
        applied, so the caller still gets its summary.
        """
        try:
            async with transaction(self._session_maker) as db:
                await self._ledger.finalize(db, job_id, JobStatus.COMPLETED, summary)
        except Exception as e:
            logger.error(
                "ingest.import.finalize_failed",
                job_id=job_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    async def _record_failure(self, job_id: str, token: str, total: int, error_type: str) -> None:
        """Best-effort failure record; never retried inside the request."""
        summary = ImportSummary(total=total, error=FAILURE_MESSAGE)
        try:
            async with transaction(self._session_maker) as db:
                await self._ledger.record_failure(db, job_id, token, summary, error_type)
        except Exception as e:
            logger.error(
                "jobs.record_failure_failed",
                job_id=job_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
