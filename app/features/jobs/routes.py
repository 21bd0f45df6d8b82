"""API routes for the import job ledger.

Jobs are created only by POST /ingest/contacts; these endpoints expose
their state for polling and for reconciliation of stale pending jobs.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.features.jobs.models import JobStatus
from app.features.jobs.schemas import JobListResponse, JobResponse
from app.features.jobs.service import JobLedger

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get(
    "",
    response_model=JobListResponse,
    summary="List import jobs",
    description="""
List import jobs, newest first, with pagination and optional status filter.

**Example Use Cases**:
1. List all jobs: `GET /jobs`
2. Find jobs left pending by a crash: `GET /jobs?status=pending`
3. Paginate: `GET /jobs?page=2&page_size=10`
""",
)
async def list_jobs(
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(20, ge=1, le=100, description="Jobs per page (max 100)"),
    status: JobStatus | None = Query(None, description="Filter by status"),
) -> JobListResponse:
    """List jobs with pagination and filtering."""
    return await JobLedger().list_jobs(db=db, page=page, page_size=page_size, status=status)


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get import job by ID",
)
async def get_job(
    job_id: str,
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """Get job details by ID.

    Raises:
        NotFoundError: If job not found.
    """
    result = await JobLedger().get_job(db=db, job_id=job_id)
    if result is None:
        raise NotFoundError(
            message=f"Job not found: {job_id}. Use GET /jobs to list available jobs.",
            details={"job_id": job_id},
        )
    return result
