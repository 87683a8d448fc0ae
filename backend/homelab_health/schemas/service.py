"""Service descriptor schemas."""
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field

DEFAULT_EXPECTED_STATUS = [200, 201, 202, 204]


class ProbeConfig(BaseModel):
    """Structured health check for the advanced strategy."""
    url: str = Field(..., min_length=1)
    method: str = "GET"
    timeout_ms: Optional[int] = Field(
        None, gt=0, validation_alias=AliasChoices("timeout_ms", "timeoutMs", "timeout")
    )
    expected_status: Union[int, List[int]] = Field(
        default_factory=lambda: list(DEFAULT_EXPECTED_STATUS),
        validation_alias=AliasChoices("expected_status", "expectedStatus"),
    )
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None
    follow_redirects: bool = Field(
        True, validation_alias=AliasChoices("follow_redirects", "followRedirects")
    )
    retries: Optional[int] = Field(None, gt=0)

    class Config:
        frozen = True

    @property
    def expected_statuses(self) -> List[int]:
        if isinstance(self.expected_status, int):
            return [self.expected_status]
        return list(self.expected_status)


class ServiceDescriptor(BaseModel):
    """A monitored endpoint as registered with the health monitor."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    url: Optional[str] = None
    health_check: Optional[Union[str, ProbeConfig]] = Field(
        None, validation_alias=AliasChoices("health_check", "healthCheck")
    )
    check_interval_ms: Optional[int] = Field(
        None,
        gt=0,
        validation_alias=AliasChoices(
            "check_interval_ms", "checkIntervalMs", "healthCheckInterval"
        ),
    )
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    critical: bool = False

    class Config:
        frozen = True

    @property
    def check_target(self) -> Optional[Union[str, ProbeConfig]]:
        """What gets probed: the health check if configured, else the service URL."""
        return self.health_check or self.url
