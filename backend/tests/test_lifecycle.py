"""
Home Pager Backend — Lifecycle Coordinator Tests
==================================================

What:  Binds real loopback sockets and runs the coordinated uvicorn server.
Why:   Bind failures must surface as ListenerError, and a stop request must
       drain in-flight requests before the process exits.

What we test:
    ✅ Invalid and already-bound ports → ListenerError
    ✅ STARTING → SERVING → DRAINING → STOPPED around a real request
    ✅ An in-flight ingress fetch completes during the drain
    ✅ SIGTERM drains; a fatal serve error skips the drain
    ✅ A request outliving the drain budget cannot hold shutdown open
"""

import asyncio
import os
import signal
import socket
import sys
import time

import httpx
import pytest

from homepager.config import Settings
from homepager.exceptions import ListenerError
from homepager.lifecycle import CoordinatedServer, LifecycleCoordinator, LifecycleState


def loopback_settings(port: str = "0") -> Settings:
    return Settings(host="127.0.0.1", port=port)


async def wait_until_serving(coordinator: LifecycleCoordinator, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not (coordinator.server is not None and coordinator.server.started):
        if loop.time() > deadline:
            raise AssertionError("server did not start")
        await asyncio.sleep(0.01)


class TestBind:

    @pytest.mark.asyncio
    async def test_non_numeric_port(self, make_app):
        coordinator = LifecycleCoordinator(make_app(), loopback_settings("http"))
        with pytest.raises(ListenerError, match="invalid listen port"):
            coordinator.bind()

    @pytest.mark.asyncio
    async def test_port_in_use(self, make_app):
        with socket.create_server(("127.0.0.1", 0)) as taken:
            port = taken.getsockname()[1]
            coordinator = LifecycleCoordinator(make_app(), loopback_settings(str(port)))

            with pytest.raises(ListenerError, match="could not listen"):
                coordinator.bind()

    @pytest.mark.asyncio
    async def test_ephemeral_port_is_reported(self, make_app):
        coordinator = LifecycleCoordinator(make_app(), loopback_settings())
        sock = coordinator.bind()
        try:
            assert coordinator.bound_port == sock.getsockname()[1]
            assert coordinator.bound_port > 0
        finally:
            sock.close()

    @pytest.mark.asyncio
    async def test_run_raises_on_bind_failure(self, make_app):
        coordinator = LifecycleCoordinator(make_app(), loopback_settings("70000"))
        with pytest.raises(ListenerError):
            await coordinator.run()


class TestServeAndDrain:

    @pytest.mark.asyncio
    async def test_serves_then_stops(self, make_app):
        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=2)
        assert coordinator.state is LifecycleState.STARTING

        run_task = asyncio.create_task(coordinator.run())
        await wait_until_serving(coordinator)
        assert coordinator.state is LifecycleState.SERVING

        async with httpx.AsyncClient(trust_env=False) as client:
            response = await client.get(f"http://127.0.0.1:{coordinator.bound_port}/healthz")
        assert response.status_code == 200
        assert "server" not in response.headers

        coordinator.request_shutdown()
        await asyncio.wait_for(run_task, timeout=5)

        assert coordinator.state is LifecycleState.STOPPED

    @pytest.mark.asyncio
    async def test_repeated_shutdown_requests_are_harmless(self, make_app):
        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=2)
        run_task = asyncio.create_task(coordinator.run())
        await wait_until_serving(coordinator)

        coordinator.request_shutdown()
        coordinator.request_shutdown()
        await asyncio.wait_for(run_task, timeout=5)

        assert coordinator.state is LifecycleState.STOPPED

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cluster_env", "token_file")
    async def test_in_flight_request_completes_during_drain(self, make_app, upstream):
        async def slow(request):
            await asyncio.sleep(0.5)
            return httpx.Response(200, json={"items": [{"metadata": {"name": "slow"}}]})

        upstream.handler = slow
        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=5)
        run_task = asyncio.create_task(coordinator.run())
        await wait_until_serving(coordinator)

        async with httpx.AsyncClient(trust_env=False) as client:
            in_flight = asyncio.create_task(
                client.get(f"http://127.0.0.1:{coordinator.bound_port}/api/ingresses")
            )
            while not upstream.requests:
                await asyncio.sleep(0.01)

            coordinator.request_shutdown()
            await asyncio.sleep(0.05)
            assert coordinator.state is LifecycleState.DRAINING

            response = await asyncio.wait_for(in_flight, timeout=5)

        assert response.status_code == 200
        assert response.json()["items"][0]["metadata"]["name"] == "slow"

        await asyncio.wait_for(run_task, timeout=5)
        assert coordinator.state is LifecycleState.STOPPED

    @pytest.mark.asyncio
    async def test_standalone_listing_over_http(self, make_app):
        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=2)
        run_task = asyncio.create_task(coordinator.run())
        await wait_until_serving(coordinator)

        try:
            async with httpx.AsyncClient(trust_env=False, timeout=5) as client:
                response = await client.get(
                    f"http://127.0.0.1:{coordinator.bound_port}/api/ingresses"
                )
        finally:
            coordinator.request_shutdown()
            await asyncio.wait_for(run_task, timeout=5)

        assert response.status_code == 200
        assert response.json() == {"items": []}
        assert response.headers["cache-control"] == "no-cache"

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")
    async def test_sigterm_triggers_drain(self, make_app):
        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=2)
        run_task = asyncio.create_task(coordinator.run())
        await wait_until_serving(coordinator)

        if signal.SIGTERM not in coordinator.handled_signals:
            coordinator.request_shutdown()
            await asyncio.wait_for(run_task, timeout=5)
            pytest.skip("loop signal handlers unavailable in this thread")

        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(run_task, timeout=5)

        assert coordinator.state is LifecycleState.STOPPED
        assert coordinator.handled_signals == []

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("cluster_env", "token_file")
    async def test_drain_is_bounded_by_timeout(self, make_app, upstream):
        async def hang(request):
            await asyncio.sleep(30)
            return httpx.Response(200, json={"items": []})

        upstream.handler = hang
        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=1)
        run_task = asyncio.create_task(coordinator.run())
        await wait_until_serving(coordinator)

        async with httpx.AsyncClient(trust_env=False, timeout=10) as client:
            in_flight = asyncio.create_task(
                client.get(f"http://127.0.0.1:{coordinator.bound_port}/api/ingresses")
            )
            while not upstream.requests:
                await asyncio.sleep(0.01)

            started = time.monotonic()
            coordinator.request_shutdown()
            await asyncio.wait_for(run_task, timeout=6)
            elapsed = time.monotonic() - started

            in_flight.cancel()
            await asyncio.gather(in_flight, return_exceptions=True)

        assert elapsed < 5
        assert coordinator.state is LifecycleState.STOPPED


class TestFatalServe:

    @pytest.mark.asyncio
    async def test_serve_error_raises_listener_error(self, make_app, monkeypatch):
        async def broken_serve(self, sockets=None):
            raise RuntimeError("accept loop crashed")

        monkeypatch.setattr(CoordinatedServer, "serve", broken_serve)
        coordinator = LifecycleCoordinator(make_app(), loopback_settings())

        with pytest.raises(ListenerError, match="accept loop crashed"):
            await asyncio.wait_for(coordinator.run(), timeout=5)

        assert coordinator.state is LifecycleState.STOPPED

    @pytest.mark.asyncio
    async def test_serve_ending_before_startup_is_fatal(self, make_app, monkeypatch):
        async def quiet_serve(self, sockets=None):
            return None

        monkeypatch.setattr(CoordinatedServer, "serve", quiet_serve)
        coordinator = LifecycleCoordinator(make_app(), loopback_settings())

        with pytest.raises(ListenerError, match="before startup completed"):
            await asyncio.wait_for(coordinator.run(), timeout=5)

        assert coordinator.state is LifecycleState.STOPPED


class StubServer:
    """Stands in for uvicorn.Server in drain tests: only the exit flags."""

    def __init__(self):
        self.should_exit = False
        self.force_exit = False


class TestDrain:

    @pytest.mark.asyncio
    async def test_force_exit_after_graceful_budget(self, make_app):
        server = StubServer()

        async def stops_only_when_forced():
            while not server.force_exit:
                await asyncio.sleep(0.01)

        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=0.2)
        serve_task = asyncio.create_task(stops_only_when_forced())

        await asyncio.wait_for(coordinator._drain(server, serve_task), timeout=5)

        assert server.should_exit is True
        assert server.force_exit is True
        assert serve_task.done() and not serve_task.cancelled()
        assert coordinator.state is LifecycleState.DRAINING

    @pytest.mark.asyncio
    async def test_stuck_server_is_cancelled(self, make_app, caplog):
        server = StubServer()
        serve_task = asyncio.create_task(asyncio.sleep(30))
        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=0.2)

        await asyncio.wait_for(coordinator._drain(server, serve_task), timeout=5)

        assert serve_task.cancelled()
        assert "did not stop" in caplog.text

    @pytest.mark.asyncio
    async def test_drain_error_is_logged_not_raised(self, make_app, caplog):
        async def failing_shutdown():
            raise RuntimeError("lifespan shutdown failed")

        serve_task = asyncio.create_task(failing_shutdown())
        coordinator = LifecycleCoordinator(make_app(), loopback_settings(), drain_timeout=1)

        await asyncio.wait_for(coordinator._drain(StubServer(), serve_task), timeout=5)

        assert "lifespan shutdown failed" in caplog.text
