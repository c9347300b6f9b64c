"""
Home Pager Backend — Readiness Evaluation
===========================================

What:  Decides whether this pod should receive traffic.
Why:   Kubernetes stops routing to pods whose readiness probe fails; we want
       that to happen when the pod cannot possibly serve the ingress list
       (no credentials), not when the API server is merely slow.
How:   Local precondition check, recomputed on every probe:
         - standalone (no cluster env)            → ready
         - trust client missing                   → not ready
         - token unreadable or blank              → not ready
         - otherwise                              → ready

Readiness Philosophy:
    No live upstream call is made. Coupling readiness to API server latency
    would take every replica out of rotation during a control-plane blip,
    turning a degraded dashboard into a missing one.
"""

import logging
from typing import Optional

from homepager.exceptions import CredentialError
from homepager.services import cluster
from homepager.services.trust import TrustContext

logger = logging.getLogger(__name__)


async def is_ready(trust: Optional[TrustContext]) -> bool:
    if cluster.cluster_address() is None:
        return True

    if trust is None:
        logger.warning("Readiness: outbound client not initialized")
        return False

    try:
        token = await cluster.read_token()
    except CredentialError as e:
        logger.warning("Readiness: %s", e.message)
        return False

    return token != ""
