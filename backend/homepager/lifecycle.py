"""
Home Pager Backend — Lifecycle Coordinator
============================================

What:  Owns process startup and shutdown around the uvicorn server.
Why:   Kubernetes sends SIGTERM on every rollout. In-flight ingress fetches
       should finish instead of being cut, but a stuck connection must not
       hold the pod past its termination grace period.
How:   Two signals are awaited concurrently: the serve task failing, or the
       stop event (SIGINT/SIGTERM or request_shutdown()). Whichever fires
       first decides between a fatal exit and a bounded graceful drain.

State Machine:
    STARTING ──bind ok──▶ SERVING ──stop event──▶ DRAINING ──▶ STOPPED
        │                    │
        │ bind fails         │ serve task fails
        ▼                    ▼
    ListenerError        ListenerError            (process exits 1)

    - The socket is bound here, not by uvicorn, so a bind failure surfaces
      as a ListenerError instead of uvicorn's own sys.exit().
    - uvicorn's signal capture is disabled; the coordinator installs the
      handlers on the event loop and turns them into the stop event.
    - Drain: uvicorn stops accepting, lets in-flight requests complete for
      up to DRAIN_TIMEOUT seconds, then the coordinator forces exit. Drain
      problems are logged, never raised. STOPPED is always reached.
"""

import asyncio
import contextlib
import enum
import logging
import signal
import socket
import sys
from typing import List, Optional

import uvicorn
from starlette.types import ASGIApp

from homepager.config import Settings, settings
from homepager.exceptions import ListenerError
from homepager.main import create_app, setup_logging

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT = 10  # seconds

# Listener limits: idle keep-alive and maximum request header size
KEEP_ALIVE_TIMEOUT = 60  # seconds
MAX_HEADER_BYTES = 1 << 20
# No header-read deadline: uvicorn exposes none, keep-alive only bounds idle
# connections between requests.


class LifecycleState(str, enum.Enum):
    STARTING = "starting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


class CoordinatedServer(uvicorn.Server):
    """uvicorn server whose signal handling belongs to the coordinator."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


class LifecycleCoordinator:
    """
    Runs an ASGI app on a coordinated uvicorn server.

    Usage:
        coordinator = LifecycleCoordinator(create_app(settings), settings)
        await coordinator.run()      # returns after a drain, raises on fatal

    Attributes:
        state:       Current LifecycleState
        bound_port:  Actual TCP port once bound (useful with PORT=0)
        handled_signals: Signals routed to request_shutdown() while serving
    """

    def __init__(
        self,
        app: ASGIApp,
        app_settings: Settings,
        drain_timeout: float = DRAIN_TIMEOUT,
    ):
        self.app = app
        self.settings = app_settings
        self.drain_timeout = drain_timeout
        self.state = LifecycleState.STARTING
        self.bound_port: Optional[int] = None
        self.server: Optional[CoordinatedServer] = None
        self.handled_signals: List[signal.Signals] = []
        self._stop = asyncio.Event()

    def request_shutdown(self) -> None:
        """Ask the coordinator to drain and stop. Safe to call repeatedly."""
        if not self._stop.is_set():
            logger.info("Termination requested")
        self._stop.set()

    def bind(self) -> socket.socket:
        """
        Bind and listen on HOST:PORT.

        Raises:
            ListenerError: invalid port or the address cannot be bound.
        """
        host = self.settings.host
        try:
            port = int(self.settings.port)
        except ValueError as e:
            raise ListenerError(f"invalid listen port {self.settings.port!r}") from e
        if not 0 <= port <= 65535:
            raise ListenerError(f"invalid listen port {self.settings.port!r}")

        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        try:
            sock = socket.create_server((host, port), family=family)
        except OSError as e:
            raise ListenerError(
                f"could not listen on {host}:{port}: {e.strerror or e}",
                context={"host": host, "port": port},
            ) from e

        self.bound_port = sock.getsockname()[1]
        return sock

    async def run(self) -> None:
        """
        Serve until stopped.

        Raises:
            ListenerError: bind failure, or the server died on its own.
        """
        sock = self.bind()
        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            server_header=False,
            lifespan="on",
            timeout_keep_alive=KEEP_ALIVE_TIMEOUT,
            timeout_graceful_shutdown=self.drain_timeout,
            h11_max_incomplete_event_size=MAX_HEADER_BYTES,
        )
        self.server = CoordinatedServer(config)

        loop = asyncio.get_running_loop()
        self.handled_signals = self._install_signal_handlers(loop)
        serve_task = asyncio.create_task(self.server.serve(sockets=[sock]))
        stop_task = asyncio.create_task(self._stop.wait())

        self.state = LifecycleState.SERVING
        logger.info("Serving on %s:%d", self.settings.host, self.bound_port)

        try:
            await asyncio.wait({serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
            if serve_task.done() and not self._stop.is_set():
                self._raise_if_fatal(serve_task)
                logger.info("Server exited on its own")
            else:
                await self._drain(self.server, serve_task)
        finally:
            stop_task.cancel()
            await asyncio.gather(stop_task, return_exceptions=True)
            for sig in self.handled_signals:
                loop.remove_signal_handler(sig)
            self.handled_signals = []
            sock.close()
            self.state = LifecycleState.STOPPED

    def _raise_if_fatal(self, serve_task: "asyncio.Task[None]") -> None:
        exc = serve_task.exception()
        if exc is not None:
            logger.error("Listener failed: %s", exc)
            raise ListenerError(f"listener failed: {exc}") from exc
        if self.server is not None and not self.server.started:
            raise ListenerError("listener stopped before startup completed")

    async def _drain(self, server: CoordinatedServer, serve_task: "asyncio.Task[None]") -> None:
        self.state = LifecycleState.DRAINING
        logger.info("Shutting down (drain timeout %gs)", self.drain_timeout)
        server.should_exit = True

        done, _ = await asyncio.wait({serve_task}, timeout=self.drain_timeout)
        if not done:
            logger.warning("Drain exceeded %gs; forcing exit", self.drain_timeout)
            server.force_exit = True
            done, _ = await asyncio.wait({serve_task}, timeout=1)
        if not done:
            serve_task.cancel()
            await asyncio.gather(serve_task, return_exceptions=True)
            logger.error("Shutdown error: server did not stop; task cancelled")
            return

        exc = None if serve_task.cancelled() else serve_task.exception()
        if exc is not None:
            logger.error("Shutdown error: %s", exc)
        else:
            logger.info("Shutdown complete")

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> List[signal.Signals]:
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on Windows or outside the main thread
            with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                loop.add_signal_handler(sig, self.request_shutdown)
                installed.append(sig)
        return installed


def main() -> None:
    """Console entry point: python -m homepager / home-pager."""
    setup_logging(settings.log_level)
    app = create_app(settings)
    coordinator = LifecycleCoordinator(app, settings)
    try:
        asyncio.run(coordinator.run())
    except ListenerError as e:
        logger.critical("Fatal: %s", e.message)
        sys.exit(1)
