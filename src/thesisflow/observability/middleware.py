"""Request correlation and access logging middleware."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger
from .request_id import bind_request_id, reset_request_id, resolve_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Probed every few seconds by the orchestrator and the scraper
QUIET_PATHS = frozenset({"/health", "/metrics"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the call and echo it back.

    Writes one access log line per request (skipping health and metrics
    probes) with method, path, status code and duration.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = bind_request_id(request_id)
        path = request.url.path
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"{request.method} {path} failed",
                extra={
                    "method": request.method,
                    "path": path,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
                exc_info=True,
            )
            raise
        else:
            if path not in QUIET_PATHS:
                logger.info(
                    f"{request.method} {path} -> {response.status_code}",
                    extra={
                        "method": request.method,
                        "path": path,
                        "status_code": response.status_code,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    },
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            reset_request_id(token)
