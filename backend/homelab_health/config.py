"""Application configuration from environment variables."""
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class MonitorSettings(BaseModel):
    """Options recognized by the health monitor.

    All durations are in milliseconds.
    """

    # Hard timeout applied to every probe
    timeout_ms: int = Field(default=8000, gt=0)

    # Default interval between periodic checks of one service
    interval_ms: int = Field(default=60000, gt=0)

    # Attempts made by the advanced strategy before giving up
    max_retries: int = Field(default=2, gt=0)

    # Base delay for linear backoff between advanced attempts
    retry_delay_ms: int = Field(default=1500, gt=0)

    # Results kept per service
    max_history_size: int = Field(default=50, gt=0)

    # Same-origin relay used for cross-origin targets
    proxy_endpoint: str = Field(default="/api/health-proxy", min_length=1)

    class Config:
        extra = "forbid"
        frozen = True


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Origin the dashboard and this API are served from
    public_origin: str = "http://localhost:8000"

    # JSON file holding {"services": [...]}
    services_file: str = "config/services.json"

    # Web server port
    web_port: int = 8000

    # Run the monitor at startup
    enabled: bool = True

    # Monitor defaults (see MonitorSettings)
    timeout_ms: int = 8000
    interval_ms: int = 60000
    max_retries: int = 2
    retry_delay_ms: int = 1500
    max_history_size: int = 50
    proxy_endpoint: str = "/api/health-proxy"

    class Config:
        env_prefix = "HEALTH_"
        case_sensitive = False

    def monitor_settings(self) -> MonitorSettings:
        """Build the validated monitor options from these settings."""
        return MonitorSettings(
            timeout_ms=self.timeout_ms,
            interval_ms=self.interval_ms,
            max_retries=self.max_retries,
            retry_delay_ms=self.retry_delay_ms,
            max_history_size=self.max_history_size,
            proxy_endpoint=self.proxy_endpoint,
        )


settings = Settings()
