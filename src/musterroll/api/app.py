"""FastAPI application with lifespan, error envelope and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from musterroll.api.routes import health, imports
from musterroll.core.config import AppSettings
from musterroll.core.exceptions import (
    BatchBusyError,
    InputError,
    MusterRollError,
    NotFoundError,
    ValidationFailedError,
)
from musterroll.core.log import configure_logging
from musterroll.oracle.factory import create_oracle
from musterroll.persistence import create_persistence
from musterroll.pipeline.lifecycle import BatchLifecycleManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down application resources."""
    settings: AppSettings = app.state.settings
    configure_logging(settings)
    if getattr(app.state, "manager", None) is None:
        app.state.manager = BatchLifecycleManager.from_persistence(
            create_persistence(settings),
            oracle=create_oracle(settings),
            config=settings.pipeline,
        )
    logger.info("MusterRoll API started (environment=%s)", settings.environment)
    yield


def status_for(exc: MusterRollError) -> int:
    if isinstance(exc, ValidationFailedError):
        return 422
    if isinstance(exc, BatchBusyError):
        return 409
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, InputError):
        return 400
    return 500


def error_response(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message, **extra})


async def musterroll_error_handler(request: Request, exc: MusterRollError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    if isinstance(exc, ValidationFailedError):
        return error_response(code, str(exc), details=exc.errors)
    return error_response(code, str(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg', 'invalid request')}" if where else "Invalid request body"
    return error_response(400, message)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


def create_app(
    manager: Optional[BatchLifecycleManager] = None,
    settings: Optional[AppSettings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or AppSettings()
    app = FastAPI(
        title="MusterRoll Attendance Import",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )
    app.add_exception_handler(MusterRollError, musterroll_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(health.router)
    app.include_router(imports.router, prefix="/attendance-import")
    return app
