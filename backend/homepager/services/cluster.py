"""
Home Pager Backend — Cluster Environment
==========================================

What:  Detects whether we run inside a cluster and reads the service-account
       credentials projected into the pod.
Why:   The fetcher and the readiness probe must agree on what "in cluster"
       means; keeping the detection in one place guarantees that.
How:   Host/port come from the variables the kubelet injects into every pod.
       Credential paths are fixed by the Kubernetes service-account mount and
       are intentionally not configurable.

Paths are module attributes read at call time (tests monkeypatch them).
"""

import os
from typing import Optional, Tuple

import aiofiles

from homepager.exceptions import CredentialError

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"
CA_CERT_PATH = f"{SERVICE_ACCOUNT_DIR}/ca.crt"
TOKEN_PATH = f"{SERVICE_ACCOUNT_DIR}/token"

HOST_ENV = "KUBERNETES_SERVICE_HOST"
PORT_ENV = "KUBERNETES_SERVICE_PORT"


def cluster_address() -> Optional[Tuple[str, str]]:
    """
    Return (host, port) of the API server, or None outside a cluster.

    Either variable missing or blank means standalone mode.
    """
    host = os.environ.get(HOST_ENV, "").strip()
    port = os.environ.get(PORT_ENV, "").strip()
    if not host or not port:
        return None
    return host, port


async def read_token() -> str:
    """
    Read and trim the bearer token.

    Raises:
        CredentialError: the file is missing or unreadable.
    """
    path = TOKEN_PATH
    try:
        async with aiofiles.open(path, "rb") as f:
            raw = await f.read()
    except OSError as e:
        raise CredentialError(path=path, reason=e.strerror or str(e)) from e
    return raw.decode("utf-8", errors="replace").strip()
