"""Shared fixtures: a fake network behind httpx.MockTransport."""
import asyncio
import inspect
from typing import Any, Dict, List, Tuple
from urllib.parse import urlsplit

import httpx
import pytest
import pytest_asyncio

from homelab_health.config import MonitorSettings
from homelab_health.services.checker import CheckerService
from homelab_health.services.monitor import HealthMonitor

ORIGIN = "http://dashboard.local"
PROXY_URL = f"{ORIGIN}/api/health-proxy"


class FakeNetwork:
    """Routes requests by (host, path) to canned behaviour.

    A route can be an int status, a dict (200 JSON body), an exception to
    raise, or a callable taking the request. Unknown routes refuse the
    connection. Every request is recorded.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, action: Any):
        parts = urlsplit(url)
        self.routes[(parts.hostname, parts.path or "/")] = action

    def requests_to(self, url: str) -> List[httpx.Request]:
        parts = urlsplit(url)
        return [
            r for r in self.requests
            if r.url.host == parts.hostname and r.url.path == (parts.path or "/")
        ]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        action = self.routes.get((request.url.host, request.url.path))
        if action is None:
            raise httpx.ConnectError("Connection refused", request=request)
        if isinstance(action, Exception):
            raise action
        if callable(action):
            result = action(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        if isinstance(action, int):
            return httpx.Response(action)
        return httpx.Response(200, json=action)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


async def hang(request: httpx.Request) -> httpx.Response:
    """A server that never answers."""
    await asyncio.sleep(30)
    return httpx.Response(200)


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def monitor_settings():
    return MonitorSettings(
        timeout_ms=200,
        interval_ms=60000,
        max_retries=3,
        retry_delay_ms=1,
        max_history_size=5,
    )


@pytest.fixture
def checker(network, monitor_settings):
    return CheckerService(monitor_settings, ORIGIN, transport=network.transport)


@pytest_asyncio.fixture
async def monitor(network, monitor_settings):
    health_monitor = HealthMonitor(monitor_settings, origin=ORIGIN, transport=network.transport)
    yield health_monitor
    health_monitor.destroy()
