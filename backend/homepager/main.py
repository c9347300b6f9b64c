"""
Home Pager Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, exception
       handling and the ServiceContext lifecycle in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by the lifecycle coordinator (python -m homepager), or by
       uvicorn directly (uvicorn --factory homepager.main:create_app).
When:  Once at server startup; the returned app handles all requests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌──────────────┐ ┌─────────────┐  │
    │  │ Sec. Headers │→│ Req. Metrics │→│  Logging    │  │
    │  └──────────────┘ └──────────────┘ └─────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌───────────────┐ ┌──────────────────┐ ┌────────┐  │
    │  │/api/ingresses │ │/healthz /readyz  │ │/metrics│  │
    │  └───────────────┘ └──────────────────┘ └────────┘  │
    │  ┌───────────────────────────────────────────────┐  │
    │  │ /*  static assets (STATIC_ROOT)               │  │
    │  └───────────────────────────────────────────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌───────────────────────────────────────────────┐  │
    │  │ HomePagerError → 500 JSON │ Exception → 500   │  │
    │  └───────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    create_app():  trust bootstrap (ServiceContext.create), exactly once
    Shutdown:      close the outbound client (drops pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from homepager import __version__
from homepager.config import Settings, settings as default_settings
from homepager.exceptions import HomePagerError
from homepager.metrics import build_registry
from homepager.middleware.logging import RequestLoggingMiddleware
from homepager.middleware.request_metrics import RequestMetricsMiddleware
from homepager.middleware.security_headers import SECURITY_HEADERS, SecurityHeadersMiddleware
from homepager.routes import health, ingresses, metrics
from homepager.state import ServiceContext

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    What:    One stdout handler with a consistent format across modules.
    Why:     The container runtime collects stdout; one line per event.
    When:    Called once by the lifecycle coordinator before the app is built.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Access lines come from RequestLoggingMiddleware instead
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup/shutdown hooks.

    The ServiceContext is built in create_app(), not here, so that apps
    driven without lifespan events (ASGI test transports) still have a
    bootstrapped client. Shutdown closes that client.
    """
    context: ServiceContext = app.state.context
    logger.info(
        "Home Pager %s started (upstream timeout %.3gs, CA pinned: %s)",
        __version__,
        context.settings.kubernetes_timeout,
        context.trust.ca_pinned if context.trust else False,
    )

    yield

    await context.aclose()
    logger.info("Outbound client closed.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP responses.

    Handler hierarchy:
        HomePagerError (all request-scoped failures) → 500, message included
        Exception (fallback)                         → 500, generic message

    Upstream errors intentionally expose their message: it is what the
    operator needs to fix RBAC or networking, and it contains no secrets
    (the token is never part of an error).
    """

    @app.exception_handler(HomePagerError)
    async def handle_home_pager_error(request: Request, exc: HomePagerError):
        logger.error(
            "Error handling %s %s: %s | Context: %s",
            request.method,
            request.url.path,
            exc.message,
            exc.context,
        )
        return JSONResponse(
            status_code=500,
            content={"error": exc.error_code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """
        Catch-all for truly unexpected errors.

        Security: Stack trace is logged server-side ONLY (never in response).
        This handler runs in ServerErrorMiddleware, outside the user
        middleware stack, so the hardening headers are attached here.
        """
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred.",
            },
            headers=SECURITY_HEADERS,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    app_settings: Optional[Settings] = None,
    context: Optional[ServiceContext] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Configuration; defaults to the module singleton.
        context:      Pre-built ServiceContext (tests inject one with a mock
                      transport). When omitted the trust bootstrap runs here.
    Returns:
        Fully configured FastAPI instance ready to receive requests.
    """
    app_settings = app_settings or (context.settings if context else default_settings)
    context = context or ServiceContext.create(app_settings)

    app = FastAPI(
        title="Home Pager API",
        description="Lists cluster Ingress resources for the home page dashboard.",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.context = context
    app.state.metrics_registry = build_registry(context)

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition: the last added is
    # the outermost. Resulting order: SecurityHeaders → Metrics → Logging.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestMetricsMiddleware, counter=context.requests)
    app.add_middleware(SecurityHeadersMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(ingresses.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    # Static delegate last: it claims every remaining path
    static_root = Path(app_settings.static_root)
    if static_root.is_dir():
        app.mount("/", StaticFiles(directory=static_root, html=True), name="static")
    else:
        logger.warning("Static root %s does not exist; serving API routes only", static_root)

    return app
