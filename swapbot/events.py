"""WebSocket server that broadcasts bot events to connected UIs.

Every message is a JSON object ``{"event_type": ..., "data": ...}``.
Incoming messages from clients are ignored.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from .config import EventsConfig

logger = logging.getLogger(__name__)


class EventBroadcaster:
    """Fan-out of bot events to every connected WebSocket client."""

    def __init__(self, config: EventsConfig) -> None:
        self._config = config
        self._server: Any = None
        self._clients: set[Any] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def start(self) -> None:
        self._server = await websockets.serve(
            self._handle_client, self._config.host, self._config.port
        )
        logger.info(
            "Event server listening on ws://%s:%d", self._config.host, self._config.port
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        self._clients.clear()
        logger.info("Event server stopped")

    async def _handle_client(self, ws: Any) -> None:
        self._clients.add(ws)
        logger.info("Event client connected (%d total)", len(self._clients))
        try:
            async for _ in ws:
                pass
        except ConnectionClosed:
            pass
        finally:
            self._clients.discard(ws)
            logger.info("Event client disconnected (%d left)", len(self._clients))

    def broadcast(self, event_type: str, data: Any) -> None:
        """Send one event to all clients; slow or dead clients are skipped."""
        if not self._clients:
            return
        message = json.dumps({"event_type": event_type, "data": data}, default=str)
        websockets.broadcast(self._clients, message)
