"""
Global middleware and error rendering.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from utils.errors import ServiceError

logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render any ``ServiceError`` as its envelope with the envelope's status."""
    envelope = exc.envelope
    logger.info(
        "%s %s -> %s (%d)",
        request.method,
        request.url.path,
        envelope.code,
        envelope.http_status,
    )
    return JSONResponse(status_code=envelope.http_status, content=envelope.model_dump())


def register_middleware(app: FastAPI) -> None:
    """Attach app-level middleware and exception handlers."""

    app.add_exception_handler(ServiceError, service_error_handler)

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s — %.3fs", request.method, request.url.path, elapsed)
        return response
