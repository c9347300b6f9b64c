"""
Home Pager Backend — Pydantic Response Schemas
================================================

What:  Response models for the probe endpoints and error bodies.
Why:   Fixed payloads that Kubernetes probes and the frontend rely on, plus
       OpenAPI documentation for free.

The ingress listing has NO schema on purpose: the upstream document is
forwarded verbatim and never validated against a domain model.
"""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness payload. Always `{"status": "ok"}`."""

    status: Literal["ok"] = "ok"


class ReadinessResponse(BaseModel):
    """Readiness payload returned with 200 or 503."""

    status: Literal["ready", "not ready"] = Field(
        description="'ready' when the pod can serve the ingress list"
    )


class ErrorResponse(BaseModel):
    """
    What:  Consistent error format for all application errors.
    Why:   Frontend can parse errors uniformly; `message` carries the full
           error text, including upstream status and body excerpt.
    """

    error: str = Field(description="Machine-readable error code (e.g., 'upstream_error')")
    message: str = Field(description="Human-readable error text")
