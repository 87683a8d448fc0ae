"""Main FastAPI application hosting the health monitor."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .routers import health_router, proxy_router
from .schemas.service import ServiceDescriptor
from .services.monitor import STATUS_CHANGED, SUMMARY_UPDATED, HealthMonitor
from .services.service_loader import service_loader
from .services.websocket_manager import websocket_manager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    monitor: Optional[HealthMonitor] = None,
    services: Optional[List[ServiceDescriptor]] = None,
    start_monitoring: Optional[bool] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``monitor`` and ``services`` default to a monitor built from settings and
    the services file. ``start_monitoring`` defaults to ``settings.enabled``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        logger.info(f"Starting health monitor for origin {settings.public_origin}")

        health_monitor = monitor or HealthMonitor(
            settings.monitor_settings(), origin=settings.public_origin
        )
        registered = services if services is not None else service_loader.load_services(
            settings.services_file
        )
        app.state.monitor = health_monitor

        unsubscribers = [
            health_monitor.subscribe(STATUS_CHANGED, websocket_manager.broadcast_status_change),
            health_monitor.subscribe(SUMMARY_UPDATED, websocket_manager.broadcast_summary),
        ]
        health_monitor.register_services(registered)

        # The first pass runs in the background so the health relay served by
        # this app is already accepting requests when cross-origin probes use it
        init_task = None
        enabled = settings.enabled if start_monitoring is None else start_monitoring
        if enabled:
            init_task = asyncio.create_task(health_monitor.initialize(registered))
            logger.info("Health monitor started")
        else:
            logger.info("Health monitoring disabled")

        yield

        # Shutdown
        if init_task and not init_task.done():
            init_task.cancel()
        for unsubscribe in unsubscribers:
            unsubscribe()
        health_monitor.destroy()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Homelab Health",
        description="Health monitoring for homelab dashboard services",
        version="2.0.0",
        lifespan=lifespan,
    )

    # CORS middleware for the dashboard
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.public_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(proxy_router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "homelab-health"}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Push status_changed and summary_updated events to the dashboard."""
        await websocket_manager.connect(websocket)
        try:
            # Current counts so a freshly loaded dashboard has something to show
            await websocket.send_json({
                "type": "snapshot",
                "summary": websocket.app.state.monitor.get_health_summary().model_dump(),
            })
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            await websocket_manager.disconnect(websocket)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
