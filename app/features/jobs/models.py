"""ImportJob ORM model: the idempotency ledger.

One row per idempotency token, enforced by uq_import_job_token. The unique
constraint, not application logic, is what makes a token claimable once.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, TimestampMixin

TOKEN_MAX_LENGTH = 255


class JobStatus(str, Enum):
    """Import job lifecycle states.

    State transitions:
    - PENDING -> COMPLETED | FAILED
    - FAILED -> PENDING (guarded re-claim, only when enabled)
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


VALID_JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),  # Terminal state
    JobStatus.FAILED: {JobStatus.PENDING},
}


class ImportJob(TimestampMixin, Base):
    """Ledger row for one idempotent import.

    Attributes:
        id: Primary key.
        job_id: External identifier (UUID hex, 32 chars).
        token: Caller-supplied idempotency token (unique).
        status: Lifecycle state.
        total: Distinct records in the claimed batch.
        summary: {total, inserted, updated, error?} once finalized.
        error_type: Exception class name if status=FAILED.
        completed_at: When the job reached a terminal state.
    """

    __tablename__ = "import_job"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    token: Mapped[str] = mapped_column(String(TOKEN_MAX_LENGTH), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.PENDING.value, index=True)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    summary: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    completed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("token", name="uq_import_job_token"),
        # Supports reconciliation sweeps over stale pending jobs
        Index("ix_import_job_status_created_at", "status", "created_at"),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_import_job_valid_status",
        ),
        CheckConstraint("total >= 0", name="ck_import_job_total_non_negative"),
    )
