"""Services for probing, monitoring, loading and broadcasting."""
from .checker import CheckerService
from .monitor import HealthMonitor
from .service_loader import ServiceLoader
from .websocket_manager import ConnectionManager

__all__ = ["CheckerService", "HealthMonitor", "ServiceLoader", "ConnectionManager"]
