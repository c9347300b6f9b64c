# Routes package init
"""
Home Pager Backend — API Routes Package
=========================================

Route Inventory:
    - ingresses.py:  GET /api/ingresses   (cluster Ingress list, verbatim)
    - health.py:     GET /healthz         (liveness)
                     GET /readyz          (readiness)
    - metrics.py:    GET /metrics         (Prometheus exposition)

    Every other path falls through to the static asset mount registered
    last in main.create_app().

Design Principle:
    Routes are THIN. They fetch the ServiceContext from app state, call a
    service and shape the response. Errors are raised, not formatted here;
    the global handlers in main.py turn them into JSON.
"""

from fastapi import Request

from homepager.state import ServiceContext


def get_context(request: Request) -> ServiceContext:
    """FastAPI dependency returning the app's ServiceContext."""
    return request.app.state.context
