"""RFC 7807 problem detail bodies.

Reference: https://datatracker.ietf.org/doc/html/rfc7807
"""

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.core.logging import request_id_ctx

# Relative URIs for portability
ERROR_TYPE_BASE = "/errors"

ERROR_TYPES = {
    "NOT_FOUND": f"{ERROR_TYPE_BASE}/not-found",
    "VALIDATION_ERROR": f"{ERROR_TYPE_BASE}/validation",
    "DATABASE_ERROR": f"{ERROR_TYPE_BASE}/database",
    "CONFLICT": f"{ERROR_TYPE_BASE}/conflict",
    "INTERNAL_ERROR": f"{ERROR_TYPE_BASE}/internal",
}


class ProblemDetail(BaseModel):
    """Problem detail body with `code`, `errors` and `request_id` extensions."""

    type: str = Field(default="about:blank", description="Problem type URI.")
    title: str = Field(..., description="Short summary of the problem type.")
    status: int = Field(..., ge=400, le=599)
    detail: str | None = Field(None, description="Explanation of this occurrence.")
    instance: str | None = Field(None, description="URI of this occurrence.")
    code: str | None = Field(None, description="Machine-readable error code.")
    errors: list[dict[str, Any]] | None = Field(
        None,
        description="Per-field validation errors (422 only).",
    )
    request_id: str | None = Field(None, description="Value of the X-Request-ID header.")


class ProblemDetailResponse(JSONResponse):
    media_type = "application/problem+json"


def create_problem_detail(
    status: int,
    title: str,
    detail: str | None = None,
    error_code: str = "INTERNAL_ERROR",
    errors: list[dict[str, Any]] | None = None,
) -> ProblemDetail:
    """Build a problem detail tied to the current request ID.

    Unknown error codes get a type URI derived from the code itself.
    """
    request_id = request_id_ctx.get()
    return ProblemDetail(
        type=ERROR_TYPES.get(error_code, f"{ERROR_TYPE_BASE}/{error_code.lower()}"),
        title=title,
        status=status,
        detail=detail,
        instance=f"/requests/{request_id}" if request_id else None,
        code=error_code,
        errors=errors,
        request_id=request_id,
    )


def problem_response(
    status: int,
    title: str,
    detail: str | None = None,
    error_code: str = "INTERNAL_ERROR",
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> ProblemDetailResponse:
    """Wrap a problem detail in an application/problem+json response."""
    problem = create_problem_detail(
        status=status,
        title=title,
        detail=detail,
        error_code=error_code,
        errors=errors,
    )
    return ProblemDetailResponse(
        status_code=status,
        content=problem.model_dump(exclude_none=True),
        headers=headers or None,
    )
