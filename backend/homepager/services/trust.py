"""
Home Pager Backend — Trust Bootstrap
======================================

What:  Builds the single outbound HTTP client used to talk to the API server.
Why:   The API server presents a certificate signed by the cluster's private
       CA. Pinning the client to that CA (and nothing else) is what lets us
       send a bearer token over TLS without trusting the public PKI for it.
How:   Reads the service-account CA bundle once at startup. If present, the
       SSL context trusts only that bundle; otherwise the platform default
       trust store is used and a warning is logged.
Who:   Called once by ServiceContext.create(); the client is then shared by
       every fetch and closed on application shutdown.

Client Lifecycle:
    startup  → bootstrap_trust()     (exactly once per process)
    requests → context.trust.client  (shared, owns the connection pool)
    shutdown → TrustContext.aclose()

    The client is never rebuilt mid-process. A rotated CA requires a pod
    restart, which is how the cluster rolls CA changes anyway.
"""

import logging
import ssl
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from homepager.services import cluster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustContext:
    """The configured outbound client and how its trust was established."""

    client: httpx.AsyncClient
    ssl_context: ssl.SSLContext
    ca_pinned: bool

    async def aclose(self) -> None:
        await self.client.aclose()


def build_ssl_context(ca_path: Optional[str] = None) -> Tuple[ssl.SSLContext, bool]:
    """
    Build the SSL context for control-plane connections.

    Returns:
        (context, pinned) where pinned is True when the private CA was read.
        A readable file without any parsable certificate yields a context
        that trusts nothing; the first fetch then fails with a TLS error
        instead of silently trusting public roots.
    """
    path = ca_path or cluster.CA_CERT_PATH
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            pem = f.read()
    except OSError as e:
        logger.warning(
            "Could not read CA cert %s: %s (running outside cluster?)",
            path,
            e.strerror or e,
        )
        return ssl.create_default_context(), False

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    try:
        context.load_verify_locations(cadata=pem)
    except (ssl.SSLError, ValueError) as e:
        logger.warning("CA cert %s contains no usable certificate: %s", path, e)
    else:
        logger.info("Pinned control-plane trust to %s", path)
    return context, True


def bootstrap_trust(
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TrustContext:
    """
    Create the process-wide outbound client.

    Args:
        timeout:   Base timeout (seconds) applied to connect, read and write.
        transport: Override for tests (httpx.MockTransport). TLS settings
                   are ignored by a custom transport.
    """
    ssl_context, pinned = build_ssl_context()
    client = httpx.AsyncClient(
        verify=ssl_context,
        timeout=httpx.Timeout(timeout),
        transport=transport,
    )
    return TrustContext(client=client, ssl_context=ssl_context, ca_pinned=pinned)
