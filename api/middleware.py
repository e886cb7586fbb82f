"""
HTTP middleware for the logbook API.

RequestContextMiddleware tags every request with an ID (taken from the
client's X-Request-ID when present), logs one JSON line per request and
counts requests in the shared metrics. ErrorHandlingMiddleware turns
anything a handler failed to map into a 500 that carries the request ID.
"""
import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from src.metrics import metrics

REQUEST_ID_HEADER = "X-Request-ID"

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

logger = logging.getLogger("logbook.http")


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()


def log_json(level: int, event: str, **fields) -> None:
    """Emit one JSON log line tagged with the current request ID."""
    record = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
        "service": "logbook-api",
        "request_id": get_request_id(),
    }
    record.update(fields)
    logger.log(level, json.dumps({k: v for k, v in record.items() if v is not None}))


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request ID propagation plus access logging."""

    # Polled by monitoring; not worth a log line each
    QUIET_PATHS = frozenset({"/api/health"})

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_ctx.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            if request.url.path not in self.QUIET_PATHS:
                elapsed_ms = (time.perf_counter() - started) * 1000
                metrics.observe("http_request", elapsed_ms, failed=response.status_code >= 500)
                metrics.increment("http_requests")
                log_json(
                    logging.INFO,
                    "request",
                    method=request.method,
                    path=request.url.path,
                    status=response.status_code,
                    duration_ms=round(elapsed_ms, 1),
                )
            return response
        finally:
            request_id_ctx.reset(token)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Sanitized 500 responses; the exception text is only exposed in debug."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            metrics.increment("http_errors")
            log_json(
                logging.ERROR,
                "unhandled_exception",
                error=str(e),
                error_type=type(e).__name__,
                method=request.method,
                path=request.url.path,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "detail": str(e) if self.debug else "An internal error occurred.",
                    "request_id": get_request_id(),
                },
            )


def setup_middleware(app: FastAPI, debug: bool = False):
    """Install middleware; the last one added runs first."""
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    app.add_middleware(RequestContextMiddleware)
