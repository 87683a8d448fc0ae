"""Checker service - probes services with direct, proxy, favicon and advanced checks."""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
from urllib.parse import urljoin, urlsplit

import httpx

from ..config import MonitorSettings
from ..schemas.health import CheckMethod, HealthResult, HealthStatus
from ..schemas.service import ProbeConfig, ServiceDescriptor
from .errors import InvalidServiceError, ProxyUnavailableError

logger = logging.getLogger(__name__)

USER_AGENT = "homelab-health-checker/2.0"
NO_CACHE = {"Cache-Control": "no-cache"}
BODY_METHODS = ("POST", "PUT", "PATCH")
DEFAULT_PORTS = {"http": 80, "https": 443}

TIMEOUT_ERRORS = (asyncio.TimeoutError, httpx.TimeoutException)


@dataclass
class ProbeOutcome:
    """What a single strategy concluded about a target."""
    status: HealthStatus
    message: str
    method: Optional[CheckMethod] = None
    http_status: Optional[Union[int, str]] = None
    error: Optional[str] = None
    attempt: Optional[int] = None


def get_origin(url: str) -> str:
    """Return ``scheme://host[:port]`` for a URL, omitting default ports.

    Raises InvalidServiceError when the URL has no scheme or host.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise InvalidServiceError(f"Invalid URL: {url}") from e

    if not parts.scheme or not parts.hostname:
        raise InvalidServiceError(f"Invalid URL: {url}")

    scheme = parts.scheme.lower()
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    if port is None or DEFAULT_PORTS.get(scheme) == port:
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def _error_text(error: Exception) -> str:
    return str(error) or error.__class__.__name__


class CheckerService:
    """Runs one probe against a service and turns it into a HealthResult.

    Strategy selection depends on where the target lives relative to
    ``origin``, the origin the monitor itself is served from:

    1. same-origin targets get a direct HEAD request
    2. cross-origin targets go through the health relay first
    3. when the relay cannot answer, the target's favicon is fetched
    4. structured probe configs use the advanced strategy (same-origin only)
    """

    def __init__(
        self,
        settings: MonitorSettings,
        origin: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.origin = get_origin(origin)
        self._transport = transport

    @property
    def timeout(self) -> float:
        return self.settings.timeout_ms / 1000

    @property
    def proxy_url(self) -> str:
        return urljoin(f"{self.origin}/", self.settings.proxy_endpoint)

    def _client(self, timeout: float, **kwargs) -> httpx.AsyncClient:
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(timeout=timeout, **kwargs)

    def is_same_origin(self, url: str) -> bool:
        try:
            return get_origin(url) == self.origin
        except InvalidServiceError:
            return False

    async def check(self, service: ServiceDescriptor) -> HealthResult:
        """Probe a service. Never raises; failures become error results."""
        target = service.check_target
        if not target:
            return HealthResult(
                service_id=service.id,
                service_name=service.name,
                status=HealthStatus.UNKNOWN,
                message="No health check configured",
            )

        start = datetime.now()
        try:
            outcome = await self.perform_health_check(target)
        except Exception as e:
            logger.error(f"Health check crashed for {service.name}: {e}")
            outcome = ProbeOutcome(
                status=HealthStatus.ERROR,
                message=_error_text(e),
                error=e.__class__.__name__,
            )
        response_time = int((datetime.now() - start).total_seconds() * 1000)

        return HealthResult(
            service_id=service.id,
            service_name=service.name,
            status=outcome.status,
            message=outcome.message,
            response_time_ms=response_time,
            method=outcome.method,
            http_status=outcome.http_status,
            error=outcome.error,
            attempt=outcome.attempt,
        )

    async def perform_health_check(self, target: Union[str, ProbeConfig]) -> ProbeOutcome:
        if isinstance(target, ProbeConfig):
            return await self.advanced_health_check(target)
        return await self.intelligent_url_check(target)

    async def intelligent_url_check(self, url: str) -> ProbeOutcome:
        """Pick a strategy for a plain URL target."""
        try:
            get_origin(url)
        except InvalidServiceError as e:
            return ProbeOutcome(
                status=HealthStatus.ERROR,
                message=str(e),
                error="invalid_url",
            )

        if self.is_same_origin(url):
            logger.debug(f"Same-origin health check: {url}")
            return await self.direct_health_check(url)

        try:
            logger.debug(f"Proxy health check: {url}")
            return await self.proxy_health_check(url)
        except ProxyUnavailableError as e:
            logger.warning(f"Proxy health check failed for {url}: {e}")

        logger.debug(f"Image connectivity test: {url}")
        return await self.image_connectivity_test(url)

    async def direct_health_check(self, url: str) -> ProbeOutcome:
        """HEAD the target directly.

        2xx = healthy, 5xx = error, anything else = warning.
        """
        try:
            async with self._client(self.timeout, follow_redirects=True) as client:
                response = await asyncio.wait_for(
                    client.head(url, headers=NO_CACHE), timeout=self.timeout
                )
        except TIMEOUT_ERRORS:
            return ProbeOutcome(
                status=HealthStatus.ERROR,
                message="Health check timeout",
                method=CheckMethod.DIRECT,
                error="timeout",
            )
        except httpx.HTTPError as e:
            return ProbeOutcome(
                status=HealthStatus.ERROR,
                message=f"Connection error: {_error_text(e)}",
                method=CheckMethod.DIRECT,
                error=e.__class__.__name__,
            )

        if response.is_success:
            return ProbeOutcome(
                status=HealthStatus.HEALTHY,
                message="Service responding normally",
                method=CheckMethod.DIRECT,
                http_status=response.status_code,
            )

        status = HealthStatus.ERROR if response.status_code >= 500 else HealthStatus.WARNING
        return ProbeOutcome(
            status=status,
            message=f"HTTP {response.status_code}: {response.reason_phrase}",
            method=CheckMethod.DIRECT,
            http_status=response.status_code,
        )

    async def proxy_health_check(self, url: str) -> ProbeOutcome:
        """Ask the same-origin relay whether the target is reachable.

        Raises ProxyUnavailableError when the relay itself fails, so the
        caller can fall back to the favicon test.
        """
        try:
            async with self._client(self.timeout) as client:
                response = await asyncio.wait_for(
                    client.get(self.proxy_url, params={"url": url}, headers=NO_CACHE),
                    timeout=self.timeout,
                )
        except TIMEOUT_ERRORS as e:
            raise ProxyUnavailableError("Proxy health check timeout") from e
        except httpx.HTTPError as e:
            raise ProxyUnavailableError(f"Proxy health check failed: {_error_text(e)}") from e

        if not response.is_success:
            raise ProxyUnavailableError(f"Proxy returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise ProxyUnavailableError("Proxy returned malformed JSON") from e
        if not isinstance(payload, dict):
            raise ProxyUnavailableError("Proxy returned malformed JSON")

        accessible = bool(payload.get("accessible"))
        http_status = payload.get("status") or "unknown"
        if not isinstance(http_status, (int, str)):
            http_status = str(http_status)
        return ProbeOutcome(
            status=HealthStatus.HEALTHY if accessible else HealthStatus.ERROR,
            message=str(payload.get("message") or "Proxy health check completed"),
            method=CheckMethod.PROXY,
            http_status=http_status,
        )

    async def image_connectivity_test(self, url: str) -> ProbeOutcome:
        """Fetch the target origin's favicon with a cache-busting parameter.

        A failed fetch is only a warning: a missing favicon or a blocked
        request does not prove the service is down. Only a timeout is an error.
        """
        try:
            favicon_url = f"{get_origin(url)}/favicon.ico"
        except InvalidServiceError:
            return ProbeOutcome(
                status=HealthStatus.ERROR,
                message="Invalid URL for connectivity test",
                method=CheckMethod.IMAGE_TEST,
                error="invalid_url",
            )

        params = {"_health": int(time.time() * 1000)}
        try:
            async with self._client(self.timeout, follow_redirects=True, verify=False) as client:
                response = await asyncio.wait_for(
                    client.get(favicon_url, params=params), timeout=self.timeout
                )
        except TIMEOUT_ERRORS:
            return ProbeOutcome(
                status=HealthStatus.ERROR,
                message="Service not accessible (timeout)",
                method=CheckMethod.IMAGE_TEST,
                error="timeout",
            )
        except httpx.HTTPError as e:
            logger.debug(f"Favicon fetch failed for {url}: {_error_text(e)}")
            return ProbeOutcome(
                status=HealthStatus.WARNING,
                message="Service may be accessible (favicon request failed)",
                method=CheckMethod.IMAGE_TEST,
                error=e.__class__.__name__,
            )

        if response.is_success:
            return ProbeOutcome(
                status=HealthStatus.HEALTHY,
                message="Service appears accessible (favicon test)",
                method=CheckMethod.IMAGE_TEST,
                http_status=response.status_code,
            )
        return ProbeOutcome(
            status=HealthStatus.WARNING,
            message=f"Service may be accessible (favicon returned HTTP {response.status_code})",
            method=CheckMethod.IMAGE_TEST,
            http_status=response.status_code,
        )

    async def advanced_health_check(self, config: ProbeConfig) -> ProbeOutcome:
        """Configurable check with retries and linear backoff.

        Cross-origin targets are routed through the relay/favicon chain.
        """
        if not self.is_same_origin(config.url):
            logger.debug(f"Advanced health check via intelligent method: {config.url}")
            return await self.intelligent_url_check(config.url)

        method = config.method.upper()
        timeout = (config.timeout_ms or self.settings.timeout_ms) / 1000
        retries = config.retries or self.settings.max_retries
        expected = config.expected_statuses

        request_kwargs = {"headers": {"User-Agent": USER_AGENT, **NO_CACHE, **config.headers}}
        if config.body is not None and method in BODY_METHODS:
            request_kwargs["json"] = config.body

        last_error: Optional[str] = None
        last_error_kind: Optional[str] = None
        last_status: Optional[int] = None

        async with self._client(timeout, follow_redirects=config.follow_redirects) as client:
            for attempt in range(1, retries + 1):
                try:
                    response = await asyncio.wait_for(
                        client.request(method, config.url, **request_kwargs), timeout=timeout
                    )
                except TIMEOUT_ERRORS:
                    return ProbeOutcome(
                        status=HealthStatus.ERROR,
                        message="Advanced health check timeout",
                        method=CheckMethod.ADVANCED,
                        error="timeout",
                        attempt=attempt,
                    )
                except httpx.HTTPError as e:
                    last_error = f"Connection error: {_error_text(e)}"
                    last_error_kind = e.__class__.__name__
                else:
                    code = response.status_code
                    if code in expected:
                        return ProbeOutcome(
                            status=HealthStatus.HEALTHY,
                            message=f"Service healthy (HTTP {code})",
                            method=CheckMethod.ADVANCED,
                            http_status=code,
                            attempt=attempt,
                        )
                    if response.is_success:
                        return ProbeOutcome(
                            status=HealthStatus.WARNING,
                            message=f"Unexpected success status: HTTP {code}",
                            method=CheckMethod.ADVANCED,
                            http_status=code,
                            attempt=attempt,
                        )
                    if code < 500:
                        return ProbeOutcome(
                            status=HealthStatus.WARNING,
                            message=f"HTTP {code}: {response.reason_phrase}",
                            method=CheckMethod.ADVANCED,
                            http_status=code,
                            attempt=attempt,
                        )
                    last_error = f"Server error: HTTP {code}"
                    last_error_kind = "server_error"
                    last_status = code

                if attempt < retries:
                    delay = self.settings.retry_delay_ms * attempt / 1000
                    logger.debug(f"Retrying {config.url} in {delay}s (attempt {attempt}/{retries})")
                    await asyncio.sleep(delay)

        return ProbeOutcome(
            status=HealthStatus.ERROR,
            message=last_error or "Advanced health check failed after retries",
            method=CheckMethod.ADVANCED,
            http_status=last_status,
            error=last_error_kind or "unknown",
            attempt=retries,
        )

    async def test_proxy_availability(self) -> bool:
        """Return True when the health relay answers its test request."""
        try:
            async with self._client(self.timeout) as client:
                response = await asyncio.wait_for(
                    client.get(self.proxy_url, params={"test": "true"}), timeout=self.timeout
                )
        except TIMEOUT_ERRORS:
            logger.warning("Health check proxy not available: timeout")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Health check proxy not available: {_error_text(e)}")
            return False
        return response.is_success
