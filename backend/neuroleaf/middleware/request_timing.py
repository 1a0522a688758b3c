"""
Request Timing Middleware for Neuroleaf

Adds an X-Response-Time header to every API response and logs requests that
exceed SLOW_REQUEST_THRESHOLD_MS (default 3000).
"""

import os
import time
import logging
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

UNTIMED_PATHS = {"/health", "/", "/docs", "/openapi.json", "/redoc"}


def get_slow_request_threshold_ms() -> float:
    return float(os.getenv("SLOW_REQUEST_THRESHOLD_MS", "3000"))


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Time each request and flag slow ones in the log."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in UNTIMED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        if duration_ms > get_slow_request_threshold_ms():
            logger.warning(
                "Slow request: %s %s took %.0fms (status %d)",
                request.method, request.url.path, duration_ms, response.status_code
            )

        return response
