"""
Home Pager Backend — Application Package Initializer
=====================================================

What: Marks the `homepager` directory as a Python package.
Why:  Enables module imports like `from homepager.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    ┌─────────────────────────────────────┐
    │      Lifecycle (listener, signals)  │  ← owns startup and shutdown
    ├─────────────────────────────────────┤
    │    Routes + Middleware (API Layer)  │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (trust, fetch, readiness)│  ← talks to the control plane
    ├─────────────────────────────────────┤
    │   Config + ServiceContext (State)   │  ← built once, shared read-only
    └─────────────────────────────────────┘

    Routes never read credentials or open connections themselves; they hand
    the per-app ServiceContext to the services layer.
"""

__version__ = "1.0.0"
