"""WebSocket connection manager for real-time health events."""
import asyncio
import json
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

from ..schemas.health import StatusChangeEvent, SummaryEvent

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections and broadcasts monitor events to all connected clients."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        """Accept a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self.active_connections.add(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self.active_connections)}")

    async def disconnect(self, websocket: WebSocket):
        """Remove a disconnected WebSocket."""
        async with self._lock:
            self.active_connections.discard(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self.active_connections)}")

    async def broadcast(self, message: Dict[str, Any]):
        """Broadcast a message to all connected clients."""
        if not self.active_connections:
            return

        message_json = json.dumps(message, default=str)

        async with self._lock:
            connections = list(self.active_connections)

        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(message_json)
            except Exception as e:
                logger.debug(f"Failed to send to WebSocket: {e}")
                disconnected.append(websocket)

        if disconnected:
            async with self._lock:
                for ws in disconnected:
                    self.active_connections.discard(ws)

    async def broadcast_status_change(self, event: StatusChangeEvent):
        """Monitor handler for status_changed events."""
        await self.broadcast({
            "type": "status_changed",
            "service_id": event.service.id,
            "service_name": event.service.name,
            "previous_status": event.previous_status.value,
            "current_status": event.current_status.value,
            "result": event.current_result.model_dump(mode="json"),
        })

    async def broadcast_summary(self, event: SummaryEvent):
        """Monitor handler for summary_updated events."""
        await self.broadcast({
            "type": "summary_updated",
            "summary": event.summary.model_dump(),
            "timestamp": event.timestamp.isoformat(),
        })

    @property
    def connection_count(self) -> int:
        """Return the number of active connections."""
        return len(self.active_connections)


# Global instance
websocket_manager = ConnectionManager()
