"""Health relay endpoint used for cross-origin services."""
import logging
from datetime import datetime
from typing import Optional
from urllib.parse import urlsplit

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_proxy_client
from ..schemas.health import ProxyResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["proxy"])


def _is_http_url(url: str) -> bool:
    # urlsplit and .port raise ValueError on bad brackets or ports
    try:
        parts = urlsplit(url)
        parts.port
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


@router.get("/health-proxy", response_model=ProxyResponse)
async def health_proxy(
    url: Optional[str] = Query(None),
    test: bool = False,
    client: httpx.AsyncClient = Depends(get_proxy_client),
):
    """Check from the server side whether ``url`` is reachable.

    Any response below 500 counts as accessible; login pages and redirects
    still prove the service is up.
    """
    if test:
        return ProxyResponse(accessible=True, message="Health proxy available")

    if not url:
        raise HTTPException(status_code=400, detail="Missing url parameter")

    if not _is_http_url(url):
        raise HTTPException(status_code=400, detail=f"Invalid url: {url}")

    try:
        start = datetime.now()
        response = await client.get(url)
        response_time = int((datetime.now() - start).total_seconds() * 1000)
    except httpx.InvalidURL:
        raise HTTPException(status_code=400, detail=f"Invalid url: {url}")
    except httpx.TimeoutException:
        return ProxyResponse(accessible=False, message="Request timeout", status="timeout")
    except httpx.HTTPError as e:
        logger.debug(f"Health proxy request to {url} failed: {e}")
        return ProxyResponse(
            accessible=False,
            message=f"Connection error: {str(e) or e.__class__.__name__}",
            status="error",
        )

    accessible = response.status_code < 500
    return ProxyResponse(
        accessible=accessible,
        message=f"HTTP {response.status_code}: {response.reason_phrase}",
        status=response.status_code,
        response_time_ms=response_time,
    )
