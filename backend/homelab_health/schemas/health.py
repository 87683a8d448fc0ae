"""Health result and event schemas."""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field

from .service import ServiceDescriptor


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Status bucket of a probe."""
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"
    UNKNOWN = "unknown"


class CheckMethod(str, Enum):
    """Strategy that produced a result."""
    DIRECT = "direct"
    PROXY = "proxy"
    IMAGE_TEST = "image_test"
    ADVANCED = "advanced"


class HealthResult(BaseModel):
    """Outcome of one probe attempt."""
    service_id: str
    service_name: str
    status: HealthStatus
    message: str
    response_time_ms: Optional[int] = None
    method: Optional[CheckMethod] = None
    timestamp: datetime = Field(default_factory=utcnow)
    http_status: Optional[Union[int, str]] = None
    error: Optional[str] = None  # timeout, invalid_url, ...
    attempt: Optional[int] = None

    class Config:
        frozen = True


class HealthSummary(BaseModel):
    """Counts per status bucket."""
    healthy: int = 0
    warning: int = 0
    error: int = 0
    unknown: int = 0
    total: int = 0


class StatusChangeEvent(BaseModel):
    """Emitted when a service's status differs from its previous result."""
    service: ServiceDescriptor
    previous_status: HealthStatus
    current_status: HealthStatus
    previous_result: Optional[HealthResult] = None
    current_result: HealthResult


class SummaryEvent(BaseModel):
    """Emitted after every batch check."""
    summary: HealthSummary
    timestamp: datetime = Field(default_factory=utcnow)


class UptimeStats(BaseModel):
    """Uptime over the retained history of one service."""
    percentage: float
    healthy_checks: int
    total_checks: int
    timespan: str


class UptimeResponse(BaseModel):
    """Uptime plus average response time for the API."""
    service_id: str
    uptime: UptimeStats
    average_response_time_ms: Optional[int] = None


class HealthCheckStats(BaseModel):
    """Monitor-wide statistics."""
    total_services: int
    monitored_services: int
    methods: Dict[str, int]
    summary: HealthSummary


class ProxyResponse(BaseModel):
    """Response of the health relay endpoint."""
    accessible: bool
    message: str
    status: Optional[Union[int, str]] = None
    response_time_ms: Optional[int] = None
