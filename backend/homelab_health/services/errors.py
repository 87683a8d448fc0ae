"""Exceptions raised inside the health monitor."""


class HealthMonitorError(Exception):
    """Base class for health monitor errors."""
    pass


class InvalidServiceError(HealthMonitorError):
    """Raised when a service URL or configuration cannot be used."""
    pass


class ProxyUnavailableError(HealthMonitorError):
    """Raised when the health relay cannot answer for a target."""
    pass
