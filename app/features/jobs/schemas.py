"""Pydantic schemas for the import job ledger."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.features.jobs.models import JobStatus


class ImportSummary(BaseModel):
    """Outcome counts stored on a finalized job.

    For a completed job inserted + updated == total. `error` is only set on
    failed jobs and carries an opaque, caller-safe description.
    """

    total: int = Field(..., ge=0, description="Distinct records in the batch")
    inserted: int = Field(0, ge=0, description="Contacts created")
    updated: int = Field(0, ge=0, description="Existing contacts overwritten")
    error: str | None = Field(None, description="Failure description (failed jobs only)")


class JobResponse(BaseModel):
    """Response schema for a single import job."""

    model_config = ConfigDict(from_attributes=True)

    job_id: str = Field(..., description="Unique job identifier (32-char hex).")
    token: str = Field(..., description="Idempotency token the job was claimed under.")
    status: JobStatus = Field(
        ...,
        description="Current job status: 'pending', 'completed', or 'failed'. "
        "A job pending long after created_at needs reconciliation.",
    )
    total: int = Field(..., ge=0, description="Distinct records in the claimed batch.")
    summary: ImportSummary | None = Field(
        None,
        description="Outcome counts (null while pending).",
    )
    error_type: str | None = Field(
        None,
        description="Exception class name if status='failed'.",
    )
    completed_at: datetime | None = Field(
        None,
        description="When the job reached a terminal state.",
    )
    created_at: datetime = Field(..., description="When the token was first claimed.")
    updated_at: datetime = Field(..., description="When the job was last updated.")


class JobListResponse(BaseModel):
    """Paginated list of import jobs, newest first."""

    jobs: list[JobResponse] = Field(
        ...,
        description="Jobs for the current page. Empty if no jobs match the filters.",
    )
    total: int = Field(..., ge=0, description="Total number of jobs matching the filters.")
    page: int = Field(..., ge=1, description="Current page number (1-indexed).")
    page_size: int = Field(..., ge=1, description="Number of jobs per page. Maximum is 100.")
