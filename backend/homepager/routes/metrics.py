"""
Home Pager Backend — Metrics Route
====================================

What:  GET /metrics in Prometheus text format (uptime gauge, request counter).

Value format:
    prometheus_client renders every sample as a float, so whole-second
    uptime and the request count appear as `home_pager_uptime_seconds 3.0`
    and `home_pager_http_requests_total 5.0`. The values stay integral;
    Prometheus parses both forms identically.
"""

from fastapi import APIRouter, Request, Response

from homepager.metrics import METRICS_CONTENT_TYPE, render_metrics

router = APIRouter(tags=["Probes"])


@router.api_route("/metrics", methods=["GET", "HEAD"], summary="Prometheus metrics")
async def metrics(request: Request) -> Response:
    return Response(
        content=render_metrics(request.app.state.metrics_registry),
        media_type=METRICS_CONTENT_TYPE,
    )
