"""
Pytest configuration and fixtures
"""

from typing import List

import httpx
import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient

from fake_upstream import RecordingASGITransport, app as fake_upstream_app
from rpcgate.config import ProxySettings
from rpcgate.main import create_app
from rpcgate.proxy import MethodPolicy, ProxyTransport

FAKE_UPSTREAM_URL = "http://fake-upstream"


@pytest.fixture
def method_policy() -> MethodPolicy:
    return MethodPolicy.from_lists(
        allowed=["getHealth", "getBlock", "failWithServerError"],
        blocked=["getBlock"],
    )


@pytest.fixture
def proxy_settings() -> ProxySettings:
    return ProxySettings(upstream_url=FAKE_UPSTREAM_URL, proxy_timeout_secs=5.0)


def _patch_transport(monkeypatch: pytest.MonkeyPatch, upstream: httpx.AsyncBaseTransport) -> None:
    async def _patched_get_client(self):
        if self._client is None:
            self._client = AsyncClient(
                transport=upstream,
                timeout=self._timeout_secs,
                follow_redirects=False,
            )
        return self._client

    monkeypatch.setattr(ProxyTransport, "_get_client", _patched_get_client)


@pytest.fixture
def upstream_recorder() -> RecordingASGITransport:
    return RecordingASGITransport(fake_upstream_app)


@pytest.fixture
def proxy_client(monkeypatch, method_policy, proxy_settings, upstream_recorder):
    _patch_transport(monkeypatch, upstream_recorder)
    with TestClient(create_app(method_policy, proxy_settings)) as client:
        yield client


@pytest.fixture
def make_proxy_client(monkeypatch, method_policy, proxy_settings):
    """Build a client whose proxy talks to an arbitrary upstream transport."""
    clients: List[TestClient] = []

    def _make(upstream: httpx.AsyncBaseTransport) -> TestClient:
        _patch_transport(monkeypatch, upstream)
        client = TestClient(create_app(method_policy, proxy_settings))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)
