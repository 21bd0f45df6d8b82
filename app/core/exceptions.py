"""Application exceptions and their RFC 7807 exception handlers.

Every error leaving the API is an application/problem+json body. Internal
context (job IDs, SQL errors, offending emails) goes to the log only.
"""

from typing import Any, ClassVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from app.core.logging import get_logger
from app.core.problem_details import ProblemDetailResponse, problem_response

logger = get_logger(__name__)


class BulkImportError(Exception):
    """Base exception for application errors.

    Subclasses set `code`, `status_code` and `default_message`; `code`
    selects the problem type URI. `details` are logged, never rendered.
    """

    code: ClassVar[str] = "INTERNAL_ERROR"
    status_code: ClassVar[int] = 500
    default_message: ClassVar[str] = "Internal error"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize application error.

        Args:
            message: Caller-safe error message (defaults per subclass).
            details: Diagnostic context for the log.
            headers: Extra response headers.
        """
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details or {}
        self.headers = headers or {}

    @property
    def title(self) -> str:
        """RFC 7807 title derived from the error code."""
        return self.code.replace("_", " ").title()


class NotFoundError(BulkImportError):
    """A requested job or contact does not exist."""

    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class DatabaseError(BulkImportError):
    """Storage failure: the import transaction was rolled back.

    Covers constraint violations, lost connections and detected concurrent
    writes. Whether a retry under the same idempotency token is accepted
    depends on `import_allow_failed_reclaim`; with it off the retry is a 409.
    """

    code = "DATABASE_ERROR"
    status_code = 500
    default_message = "Database operation failed"


class ConflictError(BulkImportError):
    """The idempotency token is held by work that has not completed."""

    code = "CONFLICT"
    status_code = 409
    default_message = "Resource conflict"


async def bulk_import_exception_handler(
    request: Request,
    exc: BulkImportError,
) -> ProblemDetailResponse:
    """Render a BulkImportError as a problem detail.

    Client errors are logged at warning level, server errors at error
    level with the traceback.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "app.error_handled",
        error=exc.message,
        error_type=type(exc).__name__,
        error_code=exc.code,
        status_code=exc.status_code,
        path=str(request.url.path),
        details=exc.details,
        exc_info=exc.status_code >= 500,
    )

    return problem_response(
        status=exc.status_code,
        title=exc.title,
        detail=exc.message,
        error_code=exc.code,
        headers=exc.headers,
    )


def _field_path(loc: tuple[Any, ...] | list[Any]) -> str:
    """Format a pydantic error location as e.g. `records[3].email`."""
    path = ""
    for part in loc:
        if part == "body":
            continue
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> ProblemDetailResponse:
    """Render request validation errors with one entry per failing field.

    A single invalid record rejects the whole batch, so the response lists
    every failing field to let the caller fix them in one round trip.
    """
    field_errors: list[dict[str, str]] = []
    for error in exc.errors():
        field_errors.append(
            {
                "field": _field_path(error.get("loc", ())),
                "message": str(error.get("msg", "Validation failed")),
                "type": str(error.get("type", "unknown")),
            }
        )

    logger.warning(
        "app.validation_error",
        error_count=len(field_errors),
        path=str(request.url.path),
        fields=[e["field"] for e in field_errors][:20],
    )

    return problem_response(
        status=422,
        title="Validation Error",
        detail=f"Request validation failed with {len(field_errors)} error(s); "
        "no records were imported.",
        error_code="VALIDATION_ERROR",
        errors=field_errors,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> ProblemDetailResponse:
    """Last-resort handler; the response never echoes the exception."""
    logger.error(
        "app.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )

    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred. Quote the X-Request-ID header when reporting it.",
        error_code="INTERNAL_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the problem-detail handlers on the app."""
    app.add_exception_handler(BulkImportError, bulk_import_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
