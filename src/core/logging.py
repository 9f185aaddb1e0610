"""Observability setup on Pydantic Logfire.

Modules log through the standard library (`logging.getLogger(__name__)`);
records are forwarded to Logfire by the handler installed here. Service
functions wrap their work in `span(...)` so a quest completion shows up as
one trace with the store calls nested inside.

Structured logging:
    log_with_user_context(logger, "info", "Completed task", user_id="7", task_id="42", xp_awarded=20)
"""

import logging

import logfire
from fastapi import FastAPI

from src.core.config import settings


# Session tokens and password hashes must never reach the log backend
_SCRUB_PATTERNS = ["password_hash", "token", "authorization"]


def configure_logfire() -> None:
    """Configure Logfire and route standard logging records through it.

    Nothing is exported unless LOGFIRE_TOKEN is set; local runs still get
    console output.
    """
    logfire.configure(
        token=settings.logfire_token,
        service_name="questlog",
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
        scrubbing=logfire.ScrubbingOptions(extra_patterns=_SCRUB_PATTERNS),
    )
    logging.basicConfig(level=settings.log_level.upper(), handlers=[logfire.LogfireLoggingHandler()])

    logging.getLogger(__name__).info(
        "Logfire configured", extra={"environment": settings.environment, "export": bool(settings.logfire_token)}
    )


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every HTTP request handled by `app`."""
    logfire.instrument_fastapi(app)


def span(name: str) -> logfire.LogfireSpan:
    """Open a named span around a service operation, e.g. `span("task_service.complete_task")`."""
    return logfire.span(name)


def log_with_user_context(
    logger: logging.Logger,
    level: str,
    message: str,
    /,
    user_id: str | None = None,
    **extra: object,
) -> None:
    """Log a message with the acting user and any extra fields attached as structured context.

    Args:
        logger: Logger instance to use
        level: Log level name ("debug", "info", "warning", "error", "critical")
        message: Log message
        user_id: Acting user, omitted from the context when None
        **extra: Additional context fields (task_id, xp_awarded, ...)
    """
    context = {"user_id": user_id, **extra} if user_id else extra
    getattr(logger, level.lower())(message, extra=context)
