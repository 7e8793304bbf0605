"""HTTP middleware: request tracing, error conversion and timing."""

import time
import uuid
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import WorkflowEngineError, create_error_response
from .logging import get_logger, logging_context


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ID and turns escaped exceptions into JSON.

    An incoming ``X-Request-ID`` is reused so callers can correlate their
    own logs; otherwise a fresh one is generated. Every log record emitted
    while the request is handled carries it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

        with logging_context(request_id=request_id, path=request.url.path):
            try:
                response = await call_next(request)
            except WorkflowEngineError as e:
                logger.warning(f"{e.error_code} on {request.method} {request.url.path}: {e.message}",
                               extra={"extra_fields": e.to_dict()})
                response = JSONResponse(status_code=e.status_code, content=create_error_response(e, request_id))
            except Exception as e:
                logger.error(f"Unhandled {type(e).__name__} on {request.method} {request.url.path}", exc_info=True)
                response = JSONResponse(
                    status_code=500,
                    content={"error": "Internal server error", "request_id": request_id}
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One INFO line per request with its status."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client = request.client.host if request.client else "unknown"
        logger.debug(f"{request.method} {request.url.path} from {client}")

        response = await call_next(request)

        logger.info(f"{request.method} {request.url.path} -> {response.status_code}")
        return response


class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """Reports handling time in ``X-Response-Time`` and warns on slow requests.

    Workflow runs are synchronous, so a slow request usually means a slow
    task (an HTTP call or a delay node).
    """

    def __init__(self, app, slow_request_threshold: float = 5.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        if elapsed > self.slow_request_threshold:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {elapsed:.3f}s "
                f"(threshold {self.slow_request_threshold}s)"
            )

        response.headers["X-Response-Time"] = f"{elapsed * 1000:.1f}ms"
        return response
