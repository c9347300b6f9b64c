"""
Home Pager Backend — Request Metrics Middleware
=================================================

What:  Increments the service request counter once per inbound request.
Why:   Feeds home_pager_http_requests_total on /metrics.
How:   The increment happens before the handler runs, so requests that fail,
       time out or are cancelled by a client disconnect are still counted.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from homepager.state import RequestCounter


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, counter: RequestCounter):
        super().__init__(app)
        self.counter = counter

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        self.counter.increment()
        return await call_next(request)
