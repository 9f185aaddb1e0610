"""questlog - gamified personal quest tracker."""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from src.core import db_client
from src.core.config import constants, settings
from src.core.errors import ErrorSeverity, QuestlogError, classify_error_with_response
from src.core.logging import configure_logfire, instrument_fastapi
from src.interface.api_router import router as api_router


logger = logging.getLogger(__name__)


async def check_database() -> None:
    """Create the schema if needed and verify the record store answers queries.

    Raises:
        ConnectionError: If the database file cannot be opened or queried
    """
    try:
        await db_client.init_db()
        conn = await db_client.get_connection()
        await conn.execute("SELECT 1")
    except Exception as e:
        logger.error("startup_validation", extra={"service": "sqlite", "status": "failed", "error": str(e)})
        raise ConnectionError(f"Record store check failed: {e}") from e
    logger.info("startup_validation", extra={"service": "sqlite", "status": "ok"})


def check_avatar_storage() -> None:
    """Ensure the avatar directory exists and is writable.

    Raises:
        ConnectionError: If the directory cannot be created or written to
    """
    storage = Path(settings.avatar_storage_dir)
    try:
        storage.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConnectionError(f"Avatar storage unavailable: {e}") from e
    if not os.access(storage, os.W_OK):
        raise ConnectionError(f"Avatar storage is not writable: {storage}")
    logger.info("startup_validation", extra={"service": "avatar_storage", "status": "ok"})


async def validate_startup_configuration() -> None:
    """Validate the signing secret and both stores, exiting with status 1 on any failure."""
    logger.info("startup_validation_begin")

    try:
        settings.require_credential("secret_key", "Session signing")
        logger.info("startup_validation", extra={"stage": "credentials", "status": "ok"})

        await check_database()
        check_avatar_storage()

        logger.info("startup_validation_complete", extra={"status": "ok"})
    except (ValueError, ConnectionError) as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Logging first so validation output is captured
    configure_logfire()
    await validate_startup_configuration()
    yield
    await db_client.close_connection()


app = FastAPI(
    title="questlog",
    description="Gamified personal quest tracker",
    version="0.1.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
)

instrument_fastapi(app)

app.include_router(api_router)
app.mount(
    constants.AVATAR_URL_PREFIX,
    StaticFiles(directory=settings.avatar_storage_dir, check_dir=False),
    name="avatars",
)


@app.exception_handler(QuestlogError)
async def questlog_error_handler(_request: Request, exc: QuestlogError) -> JSONResponse:
    """Render service errors as structured JSON."""
    response = classify_error_with_response(exc)
    if response.severity in {ErrorSeverity.HIGH, ErrorSeverity.CRITICAL}:
        logger.error("request_failed", extra={"code": response.code, "error": str(exc)})
    return JSONResponse(
        content=response.model_dump(mode="json", exclude={"status_code"}),
        status_code=response.status_code,
    )


@app.get("/health")
async def health_check() -> JSONResponse:
    """Liveness probe."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
