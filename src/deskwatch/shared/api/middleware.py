"""
HTTP middleware and error mapping shared by the priority, intake and sla routers.

Every error body carries ``detail``, ``error_type``, ``correlation_id`` and
``timestamp``; handlers may add context keys (e.g. ``table`` on a 503).
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Type

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from deskwatch.core import (
    ApplicationException,
    DomainException,
    NotProvisioned,
    ResourceNotFoundException,
    ValidationException,
)
from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def correlation_id_of(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or request.headers.get(CORRELATION_HEADER, "unknown")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Reuses the caller's X-Correlation-ID or mints one, and echoes it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = request.state.correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        context = {"method": request.method, "path": request.url.path}
        try:
            response = await call_next(request)
        except Exception as exc:
            context["error"] = str(exc)
            logger.error("Request failed", extra=self._finish(request, started, context))
            raise

        context["status_code"] = response.status_code
        logger.info("Request completed", extra=self._finish(request, started, context))
        return response

    @staticmethod
    def _finish(request: Request, started: float, context: dict) -> dict:
        context["correlation_id"] = correlation_id_of(request)
        context["response_time_ms"] = int((time.perf_counter() - started) * 1000)
        return context


class NotProvisionedError(Exception):
    """Raised by controllers when a storage collaborator reports a missing table."""

    def __init__(self, outcome: NotProvisioned):
        self.outcome = outcome
        super().__init__(outcome.message)


def _error_response(request: Request, status_code: int, exc: Exception, **context) -> JSONResponse:
    body = {
        "detail": str(exc),
        "error_type": type(exc).__name__,
        "correlation_id": correlation_id_of(request),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    body.update(context)
    return JSONResponse(status_code=status_code, content=body)


_STATUS_BY_EXCEPTION: Dict[Type[ApplicationException], int] = {
    ResourceNotFoundException: 404,
    ValidationException: 400,
    DomainException: 409,
}


async def application_error_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    for exc_type, status_code in _STATUS_BY_EXCEPTION.items():
        if isinstance(exc, exc_type):
            return _error_response(request, status_code, exc, **exc.details)
    return await global_exception_handler(request, exc)


async def not_provisioned_handler(request: Request, exc: NotProvisionedError) -> JSONResponse:
    logger.warning("Storage not provisioned", extra={"table": exc.outcome.table, "path": request.url.path})
    return _error_response(request, 503, exc, table=exc.outcome.table)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last resort 500.

    Application errors keep their message; anything else is reported as
    "Internal server error". The raw exception text is included as
    ``debug_info`` only in development.
    """
    correlation_id = correlation_id_of(request)
    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "error_message": str(exc),
        },
    )

    settings = getattr(request.app.state, "settings", None)
    in_development = getattr(settings, "environment", None) == "development"
    return JSONResponse(
        status_code=500,
        content={
            "detail": exc.message if isinstance(exc, ApplicationException) else "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if in_development else None,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    for exc_type in _STATUS_BY_EXCEPTION:
        app.add_exception_handler(exc_type, application_error_handler)
    app.add_exception_handler(NotProvisionedError, not_provisioned_handler)
    app.add_exception_handler(Exception, global_exception_handler)
