import asyncio
import logging
from typing import Optional

from fastapi import WebSocket

from evote.infrastructure.notification_bus import NotificationBus

logger = logging.getLogger(__name__)


class LiveUpdateConnectionManager:
    def __init__(self):
        self.active_connections: list[WebSocket] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._bus: Optional[NotificationBus] = None

    async def connect(self, websocket: WebSocket):
        self.active_connections.append(websocket)
        await websocket.accept()
        logger.info("Live update client connected (%d open)", len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info("Live update client disconnected (%d open)", len(self.active_connections))

    async def broadcast(self, message: dict):
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning("Error sending live update: %s", e)
                self.disconnect(connection)

    def attach(self, bus: NotificationBus, loop: asyncio.AbstractEventLoop):
        """Forwards every bus event, from whichever thread published it, onto ``loop``."""
        self._bus = bus
        self._loop = loop
        bus.add_listener(self.publish_threadsafe)

    def detach(self):
        if self._bus is not None:
            self._bus.remove_listener(self.publish_threadsafe)
        self._bus = None
        self._loop = None

    def publish_threadsafe(self, event: dict):
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(event), loop)


live_update_manager = LiveUpdateConnectionManager()
