"""Structured logging with structlog and per-request context.

Every line logged while serving a request carries its request_id and, for
imports, the Idempotency-Key, so retries of one import can be followed
across requests.
"""

import logging
from collections.abc import MutableMapping
from contextvars import ContextVar
from typing import Any

import structlog

from app.core.config import Settings, get_settings

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
idempotency_key_ctx: ContextVar[str | None] = ContextVar("idempotency_key", default=None)


def add_request_context(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Copy request_id and idempotency_key from context into the event."""
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    idempotency_key = idempotency_key_ctx.get()
    if idempotency_key:
        event_dict.setdefault("idempotency_key", idempotency_key)
    return event_dict


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog from LOG_LEVEL and LOG_FORMAT.

    Args:
        settings: Explicit settings (defaults to the cached settings).
    """
    settings = settings or get_settings()

    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=settings.is_development)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_request_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[settings.log_level]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a logger for a module."""
    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger
