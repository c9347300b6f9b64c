"""
Home Pager Backend — Service Context
======================================

What:  The per-process state shared by every request: settings, the trust
       context, the ingress service, the request counter and start time.
Why:   One explicit object instead of module-level globals. Tests build a
       fresh context per app; production builds exactly one.
How:   ServiceContext.create() runs the trust bootstrap once. The context is
       stored on `app.state.context` and read by routes and middleware.

Concurrency:
    Everything here is read-only after construction except the request
    counter, which only ever moves forward through `increment()`.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from homepager.config import Settings
from homepager.services.ingress_service import IngressService
from homepager.services.trust import TrustContext, bootstrap_trust


class RequestCounter:
    """
    Monotonic request counter.

    Thread Safety:
        Increments take a lock so no update is lost even when handlers run
        in the threadpool. Reads are a single attribute load.
    """

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        return self._value


@dataclass
class ServiceContext:
    settings: Settings
    trust: Optional[TrustContext]
    ingress_service: Optional[IngressService]
    requests: RequestCounter = field(default_factory=RequestCounter)
    started_monotonic: float = field(default_factory=time.monotonic)
    started_at: float = field(default_factory=time.time)

    @classmethod
    def create(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ServiceContext":
        """
        Bootstrap trust and wire the services.

        Args:
            settings:  Resolved configuration.
            transport: Outbound transport override (tests only).
        """
        trust = bootstrap_trust(settings.kubernetes_timeout, transport=transport)
        return cls(
            settings=settings,
            trust=trust,
            ingress_service=IngressService(trust.client, settings.kubernetes_timeout),
        )

    def uptime_seconds(self) -> int:
        return int(time.monotonic() - self.started_monotonic)

    async def aclose(self) -> None:
        if self.trust is not None:
            await self.trust.aclose()
