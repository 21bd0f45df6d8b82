"""Liveness and readiness probes."""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])

# Tables an import needs; missing ones mean migrations were not applied
REQUIRED_TABLES = ("contact", "import_job")


class HealthResponse(BaseModel):
    status: Literal["ok", "unhealthy"]
    database: Literal["connected", "disconnected"] | None = None
    migrations: Literal["applied", "missing"] | None = None


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health_check() -> HealthResponse:
    """Liveness probe; never touches the database."""
    return HealthResponse(status="ok")


@router.get("/health/ready", response_model=HealthResponse, response_model_exclude_none=True)
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> HealthResponse:
    """Readiness probe: the database is reachable and migrated.

    Args:
        db: Database session dependency.

    Returns:
        Health status with database and migration state.
    """
    try:
        result = await db.execute(
            text("SELECT count(to_regclass(name)) FROM unnest(CAST(:names AS text[])) AS name"),
            {"names": list(REQUIRED_TABLES)},
        )
        present = result.scalar_one()
    except (SQLAlchemyError, OSError) as e:
        logger.error(
            "health.database_disconnected",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return HealthResponse(status="unhealthy", database="disconnected")

    if present < len(REQUIRED_TABLES):
        logger.warning("health.migrations_missing", present=present)
        return HealthResponse(status="unhealthy", database="connected", migrations="missing")

    return HealthResponse(status="ok", database="connected", migrations="applied")
