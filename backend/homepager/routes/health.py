"""
Home Pager Backend — Probe Routes
===================================

What:  Liveness and readiness endpoints for the kubelet.
Why:   Liveness says "the process runs"; readiness says "route traffic here".
       They are separate so a pod missing its token is taken out of the
       Service endpoints without being restarted in a loop.

    /healthz → always 200 {"status": "ok"}
    /readyz  → 200 {"status": "ready"} or 503 {"status": "not ready"}
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from homepager.routes import get_context
from homepager.schemas.status import HealthResponse, ReadinessResponse
from homepager.services.readiness import is_ready
from homepager.state import ServiceContext

router = APIRouter(tags=["Probes"])


@router.api_route(
    "/healthz",
    methods=["GET", "HEAD"],
    response_model=HealthResponse,
    summary="Liveness probe",
)
async def healthz() -> HealthResponse:
    return HealthResponse()


@router.api_route(
    "/readyz",
    methods=["GET", "HEAD"],
    response_model=ReadinessResponse,
    responses={503: {"description": "Not ready", "model": ReadinessResponse}},
    summary="Readiness probe",
    description=(
        "Local precondition check: standalone mode is always ready; in a cluster "
        "the outbound client must exist and the service-account token must be "
        "readable and non-empty. No call to the API server is made."
    ),
)
async def readyz(context: ServiceContext = Depends(get_context)) -> JSONResponse:
    if not await is_ready(context.trust):
        return JSONResponse(status_code=503, content={"status": "not ready"})
    return JSONResponse(status_code=200, content={"status": "ready"})
