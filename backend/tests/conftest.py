"""
Home Pager Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Every test runs with isolated credentials and a mocked control plane;
       nothing touches /var/run/secrets or the network.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Autouse (every test):
    └── isolated_cluster: credential paths → tmp_path, cluster env removed

    Function-scoped:
    ├── cluster_env:   KUBERNETES_SERVICE_HOST/PORT set
    ├── token_file:    writes a bearer token at the patched TOKEN_PATH
    ├── static_root:   temporary static asset directory
    ├── upstream:      records calls and serves a configurable response
    ├── make_app:      builds an app whose outbound client uses `upstream`
    └── make_client:   HTTPX AsyncClient bound to an app, each request
                       bounded by REQUEST_TIMEOUT
"""

import asyncio
import os
from typing import Callable, List

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from homepager.config import Settings  # noqa: E402
from homepager.main import create_app  # noqa: E402
from homepager.services import cluster  # noqa: E402
from homepager.state import ServiceContext  # noqa: E402

CLUSTER_HOST = "kubernetes.default.svc"
# Non-default port: httpx drops an explicit :443 from https URLs
CLUSTER_PORT = "6443"
INGRESS_URL = f"https://{CLUSTER_HOST}:{CLUSTER_PORT}/apis/networking.k8s.io/v1/ingresses"

# Upper bound for one in-process request; a stuck app fails the test instead
# of hanging the suite
REQUEST_TIMEOUT = 10.0


@pytest.fixture(autouse=True)
def isolated_cluster(tmp_path, monkeypatch):
    """
    Point credential paths at a temp dir and clear the cluster env.

    Why autouse: a developer running tests inside a pod must not have the
    real service-account token read or the real API server contacted.
    """
    secrets = tmp_path / "serviceaccount"
    secrets.mkdir()
    monkeypatch.setattr(cluster, "TOKEN_PATH", str(secrets / "token"))
    monkeypatch.setattr(cluster, "CA_CERT_PATH", str(secrets / "ca.crt"))
    monkeypatch.delenv(cluster.HOST_ENV, raising=False)
    monkeypatch.delenv(cluster.PORT_ENV, raising=False)
    return secrets


@pytest.fixture
def cluster_env(monkeypatch):
    monkeypatch.setenv(cluster.HOST_ENV, CLUSTER_HOST)
    monkeypatch.setenv(cluster.PORT_ENV, CLUSTER_PORT)


@pytest.fixture
def token_file(isolated_cluster):
    """Writes `test-token` (with a trailing newline, as kubelet does)."""
    path = isolated_cluster / "token"
    path.write_text("test-token\n")
    return path


@pytest.fixture
def static_root(tmp_path):
    root = tmp_path / "static"
    (root / "js").mkdir(parents=True)
    (root / "index.html").write_text("<!doctype html><title>Home</title>")
    (root / "js" / "app.js").write_text("console.log('home');")
    return root


class BoundedASGITransport(ASGITransport):
    """ASGITransport whose requests fail after REQUEST_TIMEOUT seconds."""

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await asyncio.wait_for(
            super().handle_async_request(request), timeout=REQUEST_TIMEOUT
        )


class FakeUpstream:
    """
    Mock control plane for httpx.MockTransport.

    Tests set `handler` to customize the response; `requests` records every
    call so tests can assert the network path was (or was not) taken.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.handler: Callable = lambda request: httpx.Response(200, json={"items": []})

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.handler(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest_asyncio.fixture
async def make_app(upstream, static_root):
    """
    Factory building an app with a mocked outbound transport.

    Usage:
        app = make_app(kubernetes_timeout=0.5)
        app.state.context  # the ServiceContext under test
    """
    contexts: List[ServiceContext] = []

    def _make(**overrides):
        overrides.setdefault("static_root", str(static_root))
        settings = Settings(**overrides)
        context = ServiceContext.create(settings, transport=upstream.transport())
        contexts.append(context)
        return create_app(context=context)

    yield _make

    for context in contexts:
        await context.aclose()


@pytest_asyncio.fixture
async def make_client():
    """
    Provides async HTTP test clients bound to an app.

    Usage:
        client = await make_client(app)
        response = await client.get("/healthz")
    """
    clients: List[AsyncClient] = []

    async def _make(app, raise_app_exceptions: bool = True) -> AsyncClient:
        transport = BoundedASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        client = AsyncClient(transport=transport, base_url="http://test")
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
