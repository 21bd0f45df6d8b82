"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import dispose_engine
from app.core.exceptions import register_exception_handlers
from app.core.health import router as health_router
from app.core.logging import configure_logging, get_logger
from app.core.middleware import IDEMPOTENCY_KEY_HEADER, REQUEST_ID_HEADER, RequestIdMiddleware
from app.features.contacts.routes import router as contacts_router
from app.features.ingest.routes import router as ingest_router
from app.features.jobs.routes import router as jobs_router

logger = get_logger(__name__)

OPENAPI_TAGS = [
    {
        "name": "ingest",
        "description": "Idempotent, all-or-nothing contact imports keyed by Idempotency-Key.",
    },
    {"name": "jobs", "description": "Ledger of import attempts, one per idempotency token."},
    {"name": "contacts", "description": "Read access to imported contacts."},
    {"name": "health", "description": "Liveness and readiness probes."},
]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging at startup; close pooled connections at shutdown."""
    settings = get_settings()
    configure_logging(settings)
    logger.info(
        "app.startup_completed",
        app_name=settings.app_name,
        app_env=settings.app_env,
        import_chunk_size=settings.import_chunk_size,
        import_allow_failed_reclaim=settings.import_allow_failed_reclaim,
    )

    try:
        yield
    finally:
        await dispose_engine()
        logger.info("app.shutdown_completed")


def create_app() -> FastAPI:
    """Build the API with middleware, error handlers and routers."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Idempotent, all-or-nothing bulk contact imports",
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
        debug=settings.debug,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
    )

    # First added is outermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", IDEMPOTENCY_KEY_HEADER, REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, IDEMPOTENCY_KEY_HEADER],
    )
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    for router in (health_router, ingest_router, jobs_router, contacts_router):
        app.include_router(router)

    return app


app = create_app()


def run() -> None:
    """Serve the app with uvicorn on API_HOST:API_PORT."""
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_config=None,
    )
