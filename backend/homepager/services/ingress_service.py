"""
Home Pager Backend — Ingress Fetch Service
============================================

What:  Fetches the cluster-wide Ingress list from the Kubernetes API server.
Why:   The dashboard renders links from Ingress hosts; this is the only
       upstream call the backend makes.
How:   One authenticated GET through the shared trust-bootstrapped client,
       bounded in time (asyncio.wait_for) and in size (streamed read with a
       byte ceiling), with every failure translated into a typed error.
Who:   Called by GET /api/ingresses for every request.

Request Flow:
    1. No KUBERNETES_SERVICE_HOST/PORT  → {"items": []}  (no I/O at all)
    2. Read bearer token                → CredentialError on failure
    3. GET /apis/networking.k8s.io/v1/ingresses
         transport failure              → UpstreamTransportError
         deadline exceeded              → UpstreamTimeoutError
    4. status != 200                    → UpstreamStatusError (status + excerpt)
    5. json.loads(body)                 → UpstreamDecodeError on failure
    6. return the decoded document untouched

Bounds:
    - Time: min(configured timeout, caller's remaining deadline). The task
      is cancelled when the bound expires, which closes the streamed
      response and returns the connection to the pool.
    - Size: at most MAX_BODY_BYTES are buffered, for error excerpts and
      for successful payloads alike. A truncated success body fails to
      decode rather than being partially forwarded.

No retries: each request triggers at most one upstream call.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from homepager.exceptions import (
    UpstreamDecodeError,
    UpstreamStatusError,
    UpstreamTimeoutError,
    UpstreamTransportError,
)
from homepager.services import cluster

logger = logging.getLogger(__name__)

INGRESS_API_PATH = "/apis/networking.k8s.io/v1/ingresses"

# 4 MiB: comfortably above a few thousand Ingress objects
MAX_BODY_BYTES = 4 << 20


async def read_limited(response: httpx.Response, limit: int = MAX_BODY_BYTES) -> bytes:
    """Read at most `limit` bytes of a streamed response body."""
    buffer = bytearray()
    async for chunk in response.aiter_bytes():
        buffer += chunk[: limit - len(buffer)]
        if len(buffer) >= limit:
            break
    return bytes(buffer)


def ingress_url(host: str, port: str) -> str:
    # IPv6 service hosts need brackets in the authority
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"https://{host}:{port}{INGRESS_API_PATH}"


class IngressService:
    """
    Lists Ingress resources from the control plane.

    One instance lives on the ServiceContext; it holds no per-request state
    and is safe to share across concurrent requests.
    """

    def __init__(self, client: httpx.AsyncClient, timeout: float):
        self.client = client
        self.timeout = timeout

    async def list_ingresses(self, deadline: Optional[float] = None) -> Any:
        """
        Fetch the Ingress list.

        Args:
            deadline: Seconds the caller is still willing to wait. The tighter
                      of this and the configured timeout wins.

        Returns:
            The decoded JSON document, or an empty item list outside a cluster.

        Raises:
            CredentialError, UpstreamStatusError, UpstreamTransportError,
            UpstreamTimeoutError, UpstreamDecodeError
        """
        address = cluster.cluster_address()
        if address is None:
            logger.debug("No cluster environment detected; returning empty ingress list")
            return {"items": []}

        token = await cluster.read_token()
        url = ingress_url(*address)

        bound = self.timeout if deadline is None else min(self.timeout, deadline)
        try:
            return await asyncio.wait_for(self._get(url, token, bound), timeout=bound)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError(timeout=bound, context={"url": url}) from e

    async def _get(self, url: str, token: str, bound: float) -> Any:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            async with self.client.stream("GET", url, headers=headers) as response:
                body = await read_limited(response)
                status = response.status_code
                reason = response.reason_phrase
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(timeout=bound, context={"url": url}) from e
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as e:
            # InvalidURL: bad KUBERNETES_SERVICE_PORT; UnicodeEncodeError: non-ASCII token
            raise UpstreamTransportError(
                message=f"kubernetes api request failed: {e}",
                context={"url": url},
            ) from e

        if status != 200:
            excerpt = body.decode("utf-8", errors="replace").strip()
            raise UpstreamStatusError(
                status_code=status,
                reason=reason,
                body_excerpt=excerpt,
                context={"url": url},
            )

        try:
            return json.loads(body)
        except ValueError as e:
            raise UpstreamDecodeError(reason=str(e), context={"bytes": len(body)}) from e
