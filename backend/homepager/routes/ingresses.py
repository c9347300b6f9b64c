"""
Home Pager Backend — Ingress Listing Route
============================================

What:  GET /api/ingresses returns the cluster's Ingress list as JSON.
Why:   The dashboard builds its link grid from this document.
How:   Delegates to IngressService, forwards the decoded document verbatim
       with `Cache-Control: no-cache`.

Method Policy:
    Only GET is served. Every other method is routed here explicitly (so it
    does not fall through to the static mount) and answered with 405.

Cancellation:
    The upstream fetch runs alongside a watcher on the ASGI receive channel,
    both under one anyio cancel scope. If the client disconnects first, the
    scope is cancelled, which closes the streamed upstream response and frees
    its pooled connection.
"""

import logging
from typing import Any, Awaitable, Dict

import anyio
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from homepager.routes import get_context
from homepager.schemas.status import ErrorResponse
from homepager.state import ServiceContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Ingresses"])

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# nginx convention for "client closed request"; never reaches the client
CLIENT_CLOSED_REQUEST = 499


class ClientDisconnected(Exception):
    pass


async def _wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def run_until_disconnect(request: Request, work: Awaitable[Any]) -> Any:
    """
    Await `work`, cancelling it if the client goes away first.

    The watcher runs in an anyio task group so that cancelling it also
    cancels the task groups Starlette nests inside `request.receive()`.
    `work` runs in the calling task; its own errors are re-raised as-is,
    never wrapped in an exception group.

    Raises:
        ClientDisconnected: the client disconnected before `work` finished.
    """
    outcome: Dict[str, Any] = {}

    async def watch(scope: anyio.CancelScope) -> None:
        await _wait_for_disconnect(request)
        scope.cancel()

    async with anyio.create_task_group() as tg:
        tg.start_soon(watch, tg.cancel_scope)
        try:
            outcome["value"] = await work
        except Exception as e:
            outcome["error"] = e
        tg.cancel_scope.cancel()

    if "error" in outcome:
        raise outcome["error"]
    if "value" not in outcome:
        raise ClientDisconnected()
    return outcome["value"]


@router.api_route(
    "/ingresses",
    methods=ALL_METHODS,
    responses={
        200: {"description": "Upstream Ingress list, or {\"items\": []} outside a cluster"},
        405: {"description": "Method other than GET"},
        500: {"description": "Credential, upstream, timeout or decode failure", "model": ErrorResponse},
    },
    summary="List cluster Ingress resources",
)
async def list_ingresses(
    request: Request,
    context: ServiceContext = Depends(get_context),
) -> Response:
    """
    Return the Ingress list from the control plane.

    What:    One upstream GET per call, no caching, no retries.
    Errors:  Raised as HomePagerError subclasses and rendered as 500 by the
             global handlers, with the error text in `message`.
    """
    if request.method != "GET":
        raise HTTPException(
            status_code=405,
            detail="Method not allowed",
            headers={"Allow": "GET"},
        )

    try:
        document = await run_until_disconnect(
            request, context.ingress_service.list_ingresses()
        )
    except ClientDisconnected:
        logger.info("Client disconnected; upstream ingress fetch cancelled")
        return Response(status_code=CLIENT_CLOSED_REQUEST)

    return JSONResponse(content=document, headers={"Cache-Control": "no-cache"})
