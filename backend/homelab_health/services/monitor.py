"""Health monitor - tracks status, history and change events for registered services.

Scheduling:
- One APScheduler interval job per service, independent of each other
- A job never overlaps itself (max_instances=1)
- Batch checks fan out concurrently and wait for every probe to settle

Everything runs on one event loop, so the status and history maps need no locking.
"""
import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import MonitorSettings
from ..schemas.health import (
    CheckMethod,
    HealthCheckStats,
    HealthResult,
    HealthStatus,
    HealthSummary,
    StatusChangeEvent,
    SummaryEvent,
    UptimeStats,
)
from ..schemas.service import ServiceDescriptor
from .checker import CheckerService

logger = logging.getLogger(__name__)

STATUS_CHANGED = "status_changed"
SUMMARY_UPDATED = "summary_updated"

Handler = Callable[[Any], Any]


class HealthMonitor:
    """Polls services on a schedule and notifies subscribers of changes."""

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        origin: str = "http://localhost:8000",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        checker: Optional[CheckerService] = None,
    ):
        self.settings = settings or MonitorSettings()
        self.checker = checker or CheckerService(self.settings, origin, transport=transport)
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._health_status: Dict[str, HealthResult] = {}
        self._health_history: Dict[str, Deque[HealthResult]] = {}
        self._services: Dict[str, ServiceDescriptor] = {}
        self._subscribers: Dict[str, List[Handler]] = {STATUS_CHANGED: [], SUMMARY_UPDATED: []}
        # Bumped on destroy so in-flight probes cannot repopulate cleared state
        self._generation = 0

    # Subscriptions

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register a handler for ``status_changed`` or ``summary_updated``.

        Handlers may be plain functions or coroutine functions. Returns a
        callable that removes the handler again.
        """
        if event not in self._subscribers:
            raise ValueError(f"Unknown event: {event}")
        self._subscribers[event].append(handler)

        def unsubscribe():
            if handler in self._subscribers[event]:
                self._subscribers[event].remove(handler)

        return unsubscribe

    async def _emit(self, event: str, payload: Any):
        for handler in list(self._subscribers[event]):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in {event} handler: {e}")

    # Lifecycle

    def register_services(self, services: List[ServiceDescriptor]):
        """Make services known for forced checks without scheduling them."""
        for service in services:
            self._services[service.id] = service

    async def initialize(self, services: List[ServiceDescriptor]) -> HealthSummary:
        """Check every service once, then start one timer per service."""
        logger.info(f"Health monitor initializing for {len(services)} services")
        generation = self._generation
        self.register_services(services)

        summary = await self.check_all_services(services)
        if generation != self._generation:
            logger.info("Health monitor destroyed during initialization, not scheduling")
            return summary
        self.start_continuous_monitoring(services)

        logger.info("Health monitor initialized")
        return summary

    def start_continuous_monitoring(self, services: List[ServiceDescriptor]):
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler()
            self.scheduler.start()

        for service in services:
            if not service.check_target:
                continue
            self._services[service.id] = service
            self._schedule(service, service.check_interval_ms or self.settings.interval_ms)

        logger.info(f"Started continuous monitoring for {self.monitored_count} services")

    def stop_continuous_monitoring(self):
        """Cancel every periodic check, keeping the recorded state."""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Stopped continuous health monitoring")

    def destroy(self):
        """Cancel all timers and forget all results."""
        self.stop_continuous_monitoring()
        self._health_status.clear()
        self._health_history.clear()
        self._services.clear()
        self._generation += 1
        logger.info("Health monitor destroyed")

    @staticmethod
    def _job_id(service_id: str) -> str:
        return f"health:{service_id}"

    def _schedule(self, service: ServiceDescriptor, interval_ms: int):
        self.scheduler.add_job(
            self.check_service_health,
            trigger=IntervalTrigger(seconds=interval_ms / 1000),
            args=[service],
            id=self._job_id(service.id),
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=max(1, interval_ms // 1000),
        )

    def update_health_check_interval(self, service_id: str, interval_ms: int) -> bool:
        """Reschedule a monitored service. Returns False if it is not scheduled."""
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if not self.scheduler or not self.scheduler.get_job(self._job_id(service_id)):
            return False

        self.scheduler.reschedule_job(
            self._job_id(service_id),
            trigger=IntervalTrigger(seconds=interval_ms / 1000),
        )
        logger.info(f"Health check interval for {service_id} set to {interval_ms}ms")
        return True

    def set_global_defaults(self, **options):
        """Update monitor options. None values are ignored.

        Raises pydantic.ValidationError for unknown options or invalid values.
        """
        updates = {key: value for key, value in options.items() if value is not None}
        self.settings = MonitorSettings(**{**self.settings.model_dump(), **updates})
        self.checker.settings = self.settings

        for service_id, history in self._health_history.items():
            if history.maxlen != self.settings.max_history_size:
                self._health_history[service_id] = deque(
                    history, maxlen=self.settings.max_history_size
                )

    # Checks

    async def check_all_services(self, services: List[ServiceDescriptor]) -> HealthSummary:
        """Check all services concurrently and emit one summary event.

        A failing probe is counted as an error; it never aborts the batch.
        """
        generation = self._generation
        results = await asyncio.gather(
            *[self.check_service_health(service) for service in services],
            return_exceptions=True,
        )

        counts = {status.value: 0 for status in HealthStatus}
        for service, result in zip(services, results):
            if isinstance(result, BaseException):
                counts[HealthStatus.ERROR.value] += 1
                logger.error(f"Health check failed for {service.name}: {result}")
            else:
                counts[result.status.value] += 1

        summary = HealthSummary(total=len(services), **counts)
        logger.info(
            f"Health check summary: {summary.healthy} healthy, {summary.warning} warning, "
            f"{summary.error} error, {summary.unknown} unknown"
        )
        if generation == self._generation:
            await self._emit(SUMMARY_UPDATED, SummaryEvent(summary=summary))
        return summary

    async def check_service_health(self, service: ServiceDescriptor) -> HealthResult:
        generation = self._generation
        result = await self.checker.check(service)
        if generation == self._generation:
            await self._process_health_result(service, result)
        return result

    async def force_health_check(self, service_id: str, service: ServiceDescriptor) -> HealthResult:
        """Check one service immediately, outside its timer."""
        logger.info(f"Force health check for {service.name} ({service_id})")
        return await self.check_service_health(service)

    async def _process_health_result(self, service: ServiceDescriptor, result: HealthResult):
        previous = self._health_status.get(service.id)
        self._health_status[service.id] = result
        self._add_to_history(service.id, result)

        if previous is None or previous.status != result.status:
            method_info = f" [{result.method.value}]" if result.method else ""
            logger.info(
                f"{service.name}: {result.status.value.upper()} - {result.message}{method_info}"
            )
            await self._emit(
                STATUS_CHANGED,
                StatusChangeEvent(
                    service=service,
                    previous_status=previous.status if previous else HealthStatus.UNKNOWN,
                    current_status=result.status,
                    previous_result=previous,
                    current_result=result,
                ),
            )

    def _add_to_history(self, service_id: str, result: HealthResult):
        history = self._health_history.get(service_id)
        if history is None:
            history = deque(maxlen=self.settings.max_history_size)
            self._health_history[service_id] = history
        history.append(result)

    async def test_proxy_availability(self) -> bool:
        return await self.checker.test_proxy_availability()

    # Queries

    @property
    def services(self) -> List[ServiceDescriptor]:
        return list(self._services.values())

    @property
    def monitored_count(self) -> int:
        if not self.scheduler:
            return 0
        return len(self.scheduler.get_jobs())

    def get_service(self, service_id: str) -> Optional[ServiceDescriptor]:
        return self._services.get(service_id)

    def get_service_health(self, service_id: str) -> Optional[HealthResult]:
        return self._health_status.get(service_id)

    def get_service_health_history(self, service_id: str) -> List[HealthResult]:
        return list(self._health_history.get(service_id, ()))

    def get_all_health_status(self) -> Dict[str, HealthResult]:
        return dict(self._health_status)

    def is_service_healthy(self, service_id: str) -> bool:
        health = self._health_status.get(service_id)
        return health is not None and health.status == HealthStatus.HEALTHY

    def get_health_summary(self) -> HealthSummary:
        counts = {status.value: 0 for status in HealthStatus}
        for result in self._health_status.values():
            counts[result.status.value] += 1
        return HealthSummary(total=len(self._health_status), **counts)

    def get_health_check_stats(self) -> HealthCheckStats:
        methods = {method.value: 0 for method in CheckMethod}
        for result in self._health_status.values():
            if result.method:
                methods[result.method.value] += 1

        return HealthCheckStats(
            total_services=len(self._health_status),
            monitored_services=self.monitored_count,
            methods=methods,
            summary=self.get_health_summary(),
        )

    def get_service_uptime(self, service_id: str) -> Optional[UptimeStats]:
        """Share of healthy results in the retained history."""
        history = self.get_service_health_history(service_id)
        if not history:
            return None

        healthy = sum(1 for h in history if h.status == HealthStatus.HEALTHY)
        return UptimeStats(
            percentage=round(healthy / len(history) * 100, 2),
            healthy_checks=healthy,
            total_checks=len(history),
            timespan=self._history_timespan(history),
        )

    @staticmethod
    def _history_timespan(history: List[HealthResult]) -> str:
        if len(history) < 2:
            return "insufficient data"

        elapsed = history[-1].timestamp - history[0].timestamp
        hours = round(elapsed.total_seconds() / 3600)
        if hours < 1:
            return "less than 1 hour"
        if hours < 24:
            return f"{hours} hour{'s' if hours != 1 else ''}"

        days = round(hours / 24)
        return f"{days} day{'s' if days != 1 else ''}"

    def get_average_response_time(self, service_id: str) -> Optional[int]:
        times = [
            h.response_time_ms
            for h in self.get_service_health_history(service_id)
            if h.response_time_ms
        ]
        if not times:
            return None
        return round(sum(times) / len(times))
