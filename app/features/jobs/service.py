"""Ledger access for idempotent import jobs.

Every state change is a single conditional statement, so two requests
racing on the same token are arbitrated by PostgreSQL and never by a
read followed by a write:

- claim: INSERT ... ON CONFLICT (token) DO NOTHING, then (only on conflict)
  a guarded UPDATE for re-claiming failed tokens.
- finalize: UPDATE ... WHERE status = 'pending'.
- record_failure: INSERT ... ON CONFLICT (token) DO UPDATE ... WHERE
  status = 'failed'.

CRITICAL: claim runs inside the import transaction; finalize and
record_failure each run in their own short transaction afterwards.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import DatabaseError
from app.core.logging import get_logger
from app.features.jobs.models import (
    VALID_JOB_TRANSITIONS,
    ImportJob,
    JobStatus,
)
from app.features.jobs.schemas import (
    ImportSummary,
    JobListResponse,
    JobResponse,
)

logger = get_logger(__name__)


class ClaimOutcome(str, Enum):
    """Result of trying to claim an idempotency token."""

    CLAIMED = "claimed"
    ALREADY_COMPLETED = "already_completed"
    IN_PROGRESS = "in_progress"
    ALREADY_FAILED = "already_failed"


@dataclass(frozen=True)
class ClaimResult:
    """Claim outcome plus the job it refers to."""

    outcome: ClaimOutcome
    job_id: str
    summary: ImportSummary | None = None
    reclaimed: bool = False

    @property
    def is_claimed(self) -> bool:
        return self.outcome is ClaimOutcome.CLAIMED


class JobLedger:
    """Reads and transitions import_job rows.

    Never commits: callers own the transaction boundary.
    """

    def __init__(self, allow_failed_reclaim: bool | None = None) -> None:
        """Initialize the ledger.

        Args:
            allow_failed_reclaim: Whether a failed token may be claimed again.
                Defaults to the IMPORT_ALLOW_FAILED_RECLAIM setting.
        """
        if allow_failed_reclaim is None:
            allow_failed_reclaim = get_settings().import_allow_failed_reclaim
        self.allow_failed_reclaim = allow_failed_reclaim

    async def claim(self, db: AsyncSession, token: str, total: int) -> ClaimResult:
        """Atomically reserve the ledger slot for a token.

        Args:
            db: Session inside the import transaction.
            token: Idempotency token.
            total: Distinct records in the batch.

        Returns:
            ClaimResult. Only CLAIMED permits the caller to write.

        Raises:
            DatabaseError: If the conflicting row cannot be read back.
        """
        new_job_id = uuid.uuid4().hex
        insert_stmt = (
            pg_insert(ImportJob)
            .values(
                job_id=new_job_id,
                token=token,
                status=JobStatus.PENDING.value,
                total=total,
            )
            .on_conflict_do_nothing(index_elements=["token"])
            .returning(ImportJob.job_id)
        )
        result = await db.execute(insert_stmt)
        if result.scalar_one_or_none() is not None:
            logger.info("jobs.job_claimed", job_id=new_job_id, total=total)
            return ClaimResult(outcome=ClaimOutcome.CLAIMED, job_id=new_job_id)

        # Conflict: the row is committed by another request (or a past one)
        stmt = (
            select(ImportJob)
            .where(ImportJob.token == token)
            .execution_options(populate_existing=True)
        )
        existing = (await db.execute(stmt)).scalar_one_or_none()
        if existing is None:
            raise DatabaseError(
                message="Ledger row for token disappeared after conflict",
                details={"token": token},
            )

        status = JobStatus(existing.status)
        if status is JobStatus.COMPLETED:
            summary = (
                ImportSummary.model_validate(existing.summary)
                if existing.summary
                else ImportSummary(total=existing.total)
            )
            logger.info("jobs.job_duplicate", job_id=existing.job_id)
            return ClaimResult(
                outcome=ClaimOutcome.ALREADY_COMPLETED,
                job_id=existing.job_id,
                summary=summary,
            )

        if status is JobStatus.PENDING:
            logger.warning("jobs.job_in_progress", job_id=existing.job_id)
            return ClaimResult(outcome=ClaimOutcome.IN_PROGRESS, job_id=existing.job_id)

        if not self.allow_failed_reclaim:
            logger.warning("jobs.job_failed_terminal", job_id=existing.job_id)
            return ClaimResult(outcome=ClaimOutcome.ALREADY_FAILED, job_id=existing.job_id)

        return await self._reclaim_failed(db, token, total, existing.job_id)

    async def _reclaim_failed(
        self,
        db: AsyncSession,
        token: str,
        total: int,
        job_id: str,
    ) -> ClaimResult:
        """Move a failed job back to pending if it is still failed."""
        stmt = (
            update(ImportJob)
            .where(
                ImportJob.token == token,
                ImportJob.status == JobStatus.FAILED.value,
            )
            .values(
                status=JobStatus.PENDING.value,
                total=total,
                summary=None,
                error_type=None,
                completed_at=None,
            )
            .returning(ImportJob.job_id)
            .execution_options(synchronize_session=False)
        )
        reclaimed_id = (await db.execute(stmt)).scalar_one_or_none()

        if reclaimed_id is None:
            # Another request re-claimed between our read and update
            logger.warning("jobs.job_reclaim_lost", job_id=job_id)
            return ClaimResult(outcome=ClaimOutcome.IN_PROGRESS, job_id=job_id)

        logger.info("jobs.job_reclaimed", job_id=reclaimed_id, total=total)
        return ClaimResult(outcome=ClaimOutcome.CLAIMED, job_id=reclaimed_id, reclaimed=True)

    async def finalize(
        self,
        db: AsyncSession,
        job_id: str,
        status: JobStatus,
        summary: ImportSummary,
        error_type: str | None = None,
    ) -> bool:
        """Move a pending job to a terminal state.

        Args:
            db: Session for the finalize transaction.
            job_id: Job to finalize.
            status: COMPLETED or FAILED.
            summary: Outcome counts.
            error_type: Exception class name for failed jobs.

        Returns:
            True if the row was pending and has been updated.

        Raises:
            ValueError: If status is not reachable from PENDING.
        """
        if status not in VALID_JOB_TRANSITIONS[JobStatus.PENDING]:
            msg = f"Cannot finalize job to status '{status.value}'"
            raise ValueError(msg)

        stmt = (
            update(ImportJob)
            .where(
                ImportJob.job_id == job_id,
                ImportJob.status == JobStatus.PENDING.value,
            )
            .values(
                status=status.value,
                summary=summary.model_dump(exclude_none=True),
                error_type=error_type,
                completed_at=datetime.now(UTC),
            )
            .returning(ImportJob.job_id)
            .execution_options(synchronize_session=False)
        )
        applied = (await db.execute(stmt)).scalar_one_or_none() is not None

        if applied:
            logger.info("jobs.job_finalized", job_id=job_id, status=status.value)
        else:
            logger.warning("jobs.finalize_skipped", job_id=job_id, status=status.value)
        return applied

    async def record_failure(
        self,
        db: AsyncSession,
        job_id: str,
        token: str,
        summary: ImportSummary,
        error_type: str,
    ) -> bool:
        """Durably mark a token failed after its import transaction rolled back.

        The rollback removed a fresh claim row (or restored a re-claimed row
        to failed), so this upserts by token. A row that another request has
        claimed in the meantime is left untouched.

        Args:
            db: Session for the failure transaction.
            job_id: Job ID assigned by the rolled-back claim.
            token: Idempotency token.
            summary: Summary carrying the opaque error description.
            error_type: Exception class name.

        Returns:
            True if a failed row now records this attempt.
        """
        now = datetime.now(UTC)
        insert_stmt = pg_insert(ImportJob).values(
            job_id=job_id,
            token=token,
            status=JobStatus.FAILED.value,
            total=summary.total,
            summary=summary.model_dump(exclude_none=True),
            error_type=error_type,
            completed_at=now,
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["token"],
            set_={
                "total": insert_stmt.excluded.total,
                "summary": insert_stmt.excluded.summary,
                "error_type": insert_stmt.excluded.error_type,
                "completed_at": insert_stmt.excluded.completed_at,
                "updated_at": func.now(),
            },
            where=ImportJob.status == JobStatus.FAILED.value,
        ).returning(ImportJob.job_id)

        recorded = (await db.execute(upsert_stmt)).scalar_one_or_none() is not None

        if recorded:
            logger.info("jobs.failure_recorded", job_id=job_id, error_type=error_type)
        else:
            logger.warning("jobs.record_failure_skipped", job_id=job_id)
        return recorded

    async def get_job(self, db: AsyncSession, job_id: str) -> JobResponse | None:
        """Get job by its external ID."""
        stmt = select(ImportJob).where(ImportJob.job_id == job_id)
        job = (await db.execute(stmt)).scalar_one_or_none()
        if job is None:
            return None
        return self._to_response(job)

    async def list_jobs(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        status: JobStatus | None = None,
    ) -> JobListResponse:
        """List jobs with pagination, newest first.

        Args:
            db: Database session.
            page: Page number (1-indexed).
            page_size: Number of jobs per page.
            status: Filter by status (optional).

        Returns:
            Paginated list of jobs.
        """
        stmt = select(ImportJob)
        if status is not None:
            stmt = stmt.where(ImportJob.status == status.value)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await db.execute(count_stmt)).scalar_one()

        offset = (page - 1) * page_size
        stmt = stmt.order_by(ImportJob.created_at.desc(), ImportJob.id.desc())
        result = await db.execute(stmt.offset(offset).limit(page_size))
        jobs = result.scalars().all()

        return JobListResponse(
            jobs=[self._to_response(job) for job in jobs],
            total=total,
            page=page,
            page_size=page_size,
        )

    def _to_response(self, job: ImportJob) -> JobResponse:
        return JobResponse(
            job_id=job.job_id,
            token=job.token,
            status=JobStatus(job.status),
            total=job.total,
            summary=ImportSummary.model_validate(job.summary) if job.summary else None,
            error_type=job.error_type,
            completed_at=job.completed_at,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )
