"""
Home Pager Backend — Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for each failure category.
Why:   Typed errors let the global handlers pick the status code and log
       level without string matching, and keep the fetch code free of HTTP
       concerns.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses.
Who:   Raised by services and the lifecycle coordinator.
When:  During request processing, or while binding the listener.

Exception Hierarchy:
    HomePagerError (base)
    ├── CredentialError           → 500 (token file unreadable)
    ├── UpstreamStatusError       → 500 (control plane answered non-200)
    ├── UpstreamTransportError    → 500 (connection / TLS failure)
    │   └── UpstreamTimeoutError  → 500 (deadline exceeded)
    ├── UpstreamDecodeError       → 500 (payload is not JSON)
    └── ListenerError             → fatal, process exits

    Request-scoped errors never affect later requests. Only ListenerError
    terminates the process.
"""

from typing import Any, Dict, Optional


class HomePagerError(Exception):
    """
    Base exception for all Home Pager application errors.

    Attributes:
        message:  Error text returned to the caller in the `message` field
        context:  Additional debug info (logged, not returned)
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class CredentialError(HomePagerError):
    """
    Raised when the service-account token cannot be read.

    What:    The projected token file is missing or unreadable.
    When:    Running with cluster env vars but without the credential mount,
             or during a token rotation race.
    HTTP:    500 Internal Server Error

    Never fatal: the next request reads the file again.
    """

    error_code = "credential_unavailable"

    def __init__(
        self,
        path: str,
        reason: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx["path"] = path
        super().__init__(
            message=f"could not read service account token {path}: {reason}",
            context=ctx,
        )
        self.path = path


class UpstreamStatusError(HomePagerError):
    """
    Raised when the control plane answers with a non-200 status.

    The message embeds the status line and a bounded excerpt of the body so
    the operator sees RBAC failures ("403 Forbidden ...") directly in the UI.
    """

    error_code = "upstream_error"

    def __init__(
        self,
        status_code: int,
        reason: str,
        body_excerpt: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx["status_code"] = status_code
        status_line = f"{status_code} {reason}".strip()
        message = f"kubernetes api error: {status_line}"
        if body_excerpt:
            message = f"{message} {body_excerpt}"
        super().__init__(message=message, context=ctx)
        self.status_code = status_code
        self.body_excerpt = body_excerpt


class UpstreamTransportError(HomePagerError):
    """Raised when the request never produced a response (DNS, TCP, TLS)."""

    error_code = "upstream_unreachable"

    def __init__(
        self,
        message: str = "kubernetes api request failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamTimeoutError(UpstreamTransportError):
    """
    Raised when the fetch exceeds its deadline.

    What:    The tighter of the configured timeout and the caller's deadline
             elapsed before the body was fully read.
    HTTP:    500 Internal Server Error
    """

    error_code = "upstream_timeout"

    def __init__(
        self,
        timeout: float,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        ctx["timeout"] = timeout
        super().__init__(
            message=f"kubernetes api request timed out after {timeout:g}s",
            context=ctx,
        )
        self.timeout = timeout


class UpstreamDecodeError(HomePagerError):
    """Raised when a 200 response body is not valid JSON (or was truncated)."""

    error_code = "upstream_decode_error"

    def __init__(
        self,
        reason: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=f"could not decode kubernetes api response: {reason}",
            context=context,
        )


class ListenerError(HomePagerError):
    """
    Raised when the HTTP listener cannot bind or stops serving unexpectedly.

    This is the only fatal category: the lifecycle coordinator reports it
    and the process exits with a non-zero status.
    """

    error_code = "listener_error"
