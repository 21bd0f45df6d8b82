"""Ingest API routes for idempotent contact imports."""

import time
import uuid

from fastapi import APIRouter, Depends, Header, Response, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_session_maker
from app.core.exceptions import ConflictError, DatabaseError
from app.core.logging import get_logger
from app.core.middleware import IDEMPOTENCY_KEY_HEADER
from app.features.ingest.schemas import ContactImportRequest, ContactImportResponse
from app.features.ingest.service import ImportOrchestrator
from app.features.jobs.models import TOKEN_MAX_LENGTH
from app.features.jobs.service import ClaimOutcome

logger = get_logger(__name__)

router = APIRouter(prefix="/ingest", tags=["ingest"])

GENERATED_TOKEN_NOTE = (
    "No Idempotency-Key header was sent, so one was generated. "
    "Resend this token to retry safely; requests without a key are never deduplicated."
)


def get_orchestrator(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> ImportOrchestrator:
    """Dependency building the orchestrator on the shared session factory."""
    return ImportOrchestrator(session_maker)


@router.post(
    "/contacts",
    response_model=ContactImportResponse,
    status_code=status.HTTP_200_OK,
    summary="Idempotent bulk upsert of contacts",
    description="""
Upsert contacts by email, all-or-nothing.

**Idempotency:** Send an `Idempotency-Key` header. The first request with a
key performs the import; repeating it returns the stored summary with
`duplicate: true` and writes nothing. If the key is omitted, one is
generated and returned, but the request cannot be deduplicated.

**Atomicity:** Either every record is applied or none is. There is no
partial-success mode.

**Duplicates within a batch:** The last record for an email wins and is
counted once.

**Errors:**
- 409 if the same key is currently being processed (or previously failed
  while re-claiming is disabled)
- 422 if the payload is invalid
- 500 if the batch could not be applied (it was rolled back); the
  `Idempotency-Key` response header still names the token
""",
)
async def ingest_contacts(
    request: ContactImportRequest,
    response: Response,
    idempotency_key: str | None = Header(
        None,
        alias=IDEMPOTENCY_KEY_HEADER,
        min_length=1,
        max_length=TOKEN_MAX_LENGTH,
    ),
    orchestrator: ImportOrchestrator = Depends(get_orchestrator),
) -> ContactImportResponse:
    """Import a batch of contacts under an idempotency token.

    Args:
        request: Validated import request.
        response: Outgoing response (receives the Idempotency-Key header).
        idempotency_key: Caller-supplied token, if any.
        orchestrator: Import orchestrator dependency.

    Returns:
        Summary of the (possibly previously completed) import.

    Raises:
        ConflictError: If the token is held by unfinished or failed work.
        DatabaseError: If the batch failed and was rolled back.
    """
    start_time = time.perf_counter()

    note: str | None = None
    token = idempotency_key
    if token is None:
        token = uuid.uuid4().hex
        note = GENERATED_TOKEN_NOTE

    logger.info(
        "ingest.import.request_received",
        record_count=len(request.records),
        token_generated=idempotency_key is None,
    )

    try:
        outcome = await orchestrator.run_import(request.records, token)
    except DatabaseError as e:
        # A generated token is only known to the caller through this header
        e.headers[IDEMPOTENCY_KEY_HEADER] = token
        raise

    if outcome.outcome is ClaimOutcome.IN_PROGRESS:
        raise ConflictError(
            message="An import with this Idempotency-Key is already in progress. "
            "Retry later with the same key to get its result.",
            details={"job_id": outcome.job_id},
            headers={IDEMPOTENCY_KEY_HEADER: token},
        )
    if outcome.outcome is ClaimOutcome.ALREADY_FAILED:
        raise ConflictError(
            message="An import with this Idempotency-Key previously failed. "
            "Submit again with a new key.",
            details={"job_id": outcome.job_id},
            headers={IDEMPOTENCY_KEY_HEADER: token},
        )

    summary = outcome.summary
    if summary is None:
        raise DatabaseError(
            message="Import finished without a summary",
            details={"job_id": outcome.job_id, "outcome": outcome.outcome.value},
            headers={IDEMPOTENCY_KEY_HEADER: token},
        )

    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers[IDEMPOTENCY_KEY_HEADER] = token

    logger.info(
        "ingest.import.request_completed",
        job_id=outcome.job_id,
        total=summary.total,
        inserted=summary.inserted,
        updated=summary.updated,
        duplicate=outcome.duplicate,
        duration_ms=duration_ms,
    )

    return ContactImportResponse(
        job_id=outcome.job_id,
        token=token,
        total=summary.total,
        inserted=summary.inserted,
        updated=summary.updated,
        duplicate=outcome.duplicate,
        note=note,
        duration_ms=duration_ms,
    )
