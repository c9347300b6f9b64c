"""
Home Pager Backend — Security Headers Middleware
==================================================

What:  Sets a fixed set of hardening headers on every response.
Why:   The dashboard is served from the same origin as the API; a strict CSP
       and frame denial keep a compromised Ingress annotation (rendered by
       the frontend) from turning into script execution or clickjacking.
How:   Headers are assigned after the handler returns, overriding anything a
       handler may have set.

Header Set:
    X-Content-Type-Options   nosniff
    X-Frame-Options          DENY
    Referrer-Policy          no-referrer
    Content-Security-Policy  same-origin only, data: images allowed
    Permissions-Policy       camera, microphone, geolocation disabled
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": (
        "default-src 'self'; img-src 'self' data:; style-src 'self'; "
        "script-src 'self'; connect-src 'self'"
    ),
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response
