"""Health status API for the dashboard."""
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_monitor
from ..schemas.health import (
    HealthCheckStats,
    HealthResult,
    HealthSummary,
    UptimeResponse,
)
from ..services.monitor import HealthMonitor

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("/services", response_model=Dict[str, HealthResult])
async def list_service_health(monitor: HealthMonitor = Depends(get_monitor)):
    """Current result for every checked service."""
    return monitor.get_all_health_status()


@router.get("/services/{service_id}", response_model=HealthResult)
async def get_service_health(service_id: str, monitor: HealthMonitor = Depends(get_monitor)):
    result = monitor.get_service_health(service_id)
    if result is None:
        raise HTTPException(status_code=404, detail="No health data for service")
    return result


@router.get("/services/{service_id}/history", response_model=List[HealthResult])
async def get_service_history(service_id: str, monitor: HealthMonitor = Depends(get_monitor)):
    return monitor.get_service_health_history(service_id)


@router.get("/services/{service_id}/uptime", response_model=UptimeResponse)
async def get_service_uptime(service_id: str, monitor: HealthMonitor = Depends(get_monitor)):
    uptime = monitor.get_service_uptime(service_id)
    if uptime is None:
        raise HTTPException(status_code=404, detail="No health history for service")
    return UptimeResponse(
        service_id=service_id,
        uptime=uptime,
        average_response_time_ms=monitor.get_average_response_time(service_id),
    )


@router.post("/services/{service_id}/check", response_model=HealthResult)
async def force_service_check(service_id: str, monitor: HealthMonitor = Depends(get_monitor)):
    """Run a check now, outside the service's schedule."""
    service = monitor.get_service(service_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Service not found")
    return await monitor.force_health_check(service_id, service)


@router.post("/check-all", response_model=HealthSummary)
async def check_all_services(monitor: HealthMonitor = Depends(get_monitor)):
    return await monitor.check_all_services(monitor.services)


@router.get("/summary", response_model=HealthSummary)
async def get_health_summary(monitor: HealthMonitor = Depends(get_monitor)):
    return monitor.get_health_summary()


@router.get("/stats", response_model=HealthCheckStats)
async def get_health_stats(monitor: HealthMonitor = Depends(get_monitor)):
    return monitor.get_health_check_stats()
