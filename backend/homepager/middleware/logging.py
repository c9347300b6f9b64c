"""
Home Pager Backend — Request Logging Middleware
=================================================

What:  One access log line per HTTP request.
Why:   uvicorn's access log is disabled (see setup_logging); this replaces it
       with a line that includes the handler duration and a status-based
       log level, so 5xx from upstream failures stand out.
How:   Measures wall time around the handler, logs method, path, status,
       duration and client address.

What we log vs what we DON'T log:
    ✅ Log: method, path, status, duration, client IP
    ❌ Don't log: headers (the upstream token never appears here anyway),
       probe traffic (/healthz, /readyz, /metrics run every few seconds)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from homepager.routes.ingresses import CLIENT_CLOSED_REQUEST

logger = logging.getLogger("homepager.access")

PROBE_PATHS = frozenset({"/healthz", "/readyz", "/metrics"})


def access_level(status: int) -> int:
    """5xx → ERROR, 4xx → WARNING (except 499), everything else → INFO."""
    if status >= 500:
        return logging.ERROR
    if status >= 400 and status != CLIENT_CLOSED_REQUEST:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log for dashboard and API traffic; probe paths pass through silently."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in PROBE_PATHS:
            return await call_next(request)

        began = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - began) * 1000

        peer = request.client.host if request.client else "unknown"
        fields = {
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(elapsed_ms, 2),
            "client_ip": peer,
        }
        logger.log(
            access_level(response.status_code),
            "%(method)s %(path)s %(status)d %(duration_ms).1fms from %(client_ip)s",
            fields,
            extra=fields,
        )
        return response
