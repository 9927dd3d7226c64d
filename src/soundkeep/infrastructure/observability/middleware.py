"""Middleware for observability: request/response logging."""

import logging
import re
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from soundkeep.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)

# A playing client fetches a segment every few seconds; keep those out of INFO logs
_QUIET_PATH = re.compile(r"^/api/hls/\d+/(seg/)?seg_\d+\.ts$")


# Hey future me, this middleware logs EVERY HTTP request/response and binds the correlation id
# for everything the request handler logs. Add it early so it wraps the whole stack.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Log the request and its outcome, echo X-Correlation-ID on the response."""
        set_correlation_id(request.headers.get("X-Correlation-ID"))

        method = request.method
        path = request.url.path
        level = logging.DEBUG if _QUIET_PATH.match(path) else logging.INFO
        client_ip = request.client.host if request.client else "unknown"
        # Gateway-asserted, only for log correlation. Authorization happens in get_principal
        user_id = request.headers.get("X-User-Id")

        logger.log(
            level,
            f"→ {method} {path}",
            extra={
                "method": method,
                "path": path,
                # Playlist URLs carry an access token
                "query_params": "<redacted>"
                if "token" in request.query_params
                else str(request.query_params),
                "client_ip": client_ip,
                "user_id": user_id,
            },
        )

        start_time = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            logger.exception(
                f"Request failed: {method} {path}",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": duration_ms,
                    "error_type": type(e).__name__,
                },
            )
            raise

        duration_ms = int((time.monotonic() - start_time) * 1000)
        status_mark = "✓" if response.status_code < 400 else "✗"
        logger.log(
            level,
            f"{status_mark} {method} {path} → {response.status_code} ({duration_ms}ms)",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Correlation-ID"] = get_correlation_id()
        return response
