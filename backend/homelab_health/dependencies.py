"""FastAPI dependencies."""
from typing import AsyncIterator

import httpx
from fastapi import Request

from .config import settings
from .services.monitor import HealthMonitor


def get_monitor(request: Request) -> HealthMonitor:
    """The monitor owned by the running application."""
    return request.app.state.monitor


async def get_proxy_client() -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client used by the health relay.

    Certificate verification is disabled so self-signed homelab services
    can still be reported as reachable.
    """
    async with httpx.AsyncClient(
        timeout=settings.timeout_ms / 1000,
        follow_redirects=True,
        verify=False,
    ) as client:
        yield client
