"""FastAPI application for InvTrac server.

This module creates and configures the FastAPI application with:
- Account sign-up and token endpoints
- Per-user inventory storage (GET/POST /user-data)

Usage:
    uvicorn invtrac.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from invtrac.server.api.router import router as api_router
from invtrac.server.database import DEFAULT_ACCESS_TOKEN_TTL, Database

# Configuration from environment variables with defaults
DB_PATH = Path(os.environ.get("INVTRAC_DB_PATH", "invtrac.db"))
LOG_PATH = Path(os.environ.get("INVTRAC_LOG_PATH", "invtrac-server.log"))
ACCESS_TOKEN_TTL = timedelta(
    seconds=int(
        os.environ.get(
            "INVTRAC_ACCESS_TOKEN_TTL", int(DEFAULT_ACCESS_TOKEN_TTL.total_seconds())
        )
    )
)

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for invtrac
    root_logger = logging.getLogger("invtrac")
    root_logger.setLevel(logging.INFO)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


async def _http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render HTTP errors as {"error": message}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render body validation errors as {"error": message}."""
    message = "Invalid request"
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = str(first.get("msg", message))
        if location:
            message = f"{location}: {message}"
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": message},
    )


def create_app(db: Database, access_token_ttl: timedelta = ACCESS_TOKEN_TTL) -> FastAPI:
    """Create FastAPI application with a custom database.

    This is primarily used for testing with isolated databases.

    Args:
        db: Database instance.
        access_token_ttl: Lifetime of issued access tokens.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        db_path = getattr(db, "_db_path", "in-memory")
        logger.info("=" * 60)
        logger.info("InvTrac Server Starting")
        logger.info("=" * 60)
        logger.info("  Database:  %s", db_path)
        logger.info("  Token TTL: %ds", int(access_token_ttl.total_seconds()))
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("InvTrac Server shutting down")
        db.close()

    application = FastAPI(
        title="InvTrac Server",
        description="Inventory tracking storage server",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.access_token_ttl = access_token_ttl

    application.add_exception_handler(StarletteHTTPException, _http_error_handler)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH)
    logger.info("  Logs:      %s", LOG_PATH.absolute())
    return create_app(db=Database(DB_PATH))
