"""Pydantic schemas for services, results and events."""
from .service import (
    ProbeConfig,
    ServiceDescriptor,
)
from .health import (
    CheckMethod,
    HealthCheckStats,
    HealthResult,
    HealthStatus,
    HealthSummary,
    ProxyResponse,
    StatusChangeEvent,
    SummaryEvent,
    UptimeResponse,
    UptimeStats,
)

__all__ = [
    "ProbeConfig",
    "ServiceDescriptor",
    "CheckMethod",
    "HealthCheckStats",
    "HealthResult",
    "HealthStatus",
    "HealthSummary",
    "ProxyResponse",
    "StatusChangeEvent",
    "SummaryEvent",
    "UptimeResponse",
    "UptimeStats",
]
