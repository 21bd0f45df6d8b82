"""Jobs module: the idempotency ledger for contact imports."""

from app.features.jobs.models import ImportJob, JobStatus
from app.features.jobs.routes import router
from app.features.jobs.schemas import ImportSummary, JobListResponse, JobResponse
from app.features.jobs.service import ClaimOutcome, ClaimResult, JobLedger

__all__ = [
    "ClaimOutcome",
    "ClaimResult",
    "ImportJob",
    "ImportSummary",
    "JobLedger",
    "JobListResponse",
    "JobResponse",
    "JobStatus",
    "router",
]
