"""WebSocket registry used as the default progress push channel.

Clients open /ws/progress, receive their connection id, and pass it to the
upload endpoint. Events are sent only to that one socket.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import WebSocket

from tourpricing.models import ProgressEvent

logger = logging.getLogger(__name__)


class WebSocketProgressHub:
    """In-process map of connection id to open WebSocket."""

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = secrets.token_urlsafe(16)
        self._connections[connection_id] = websocket
        await websocket.send_json({"type": "connected", "connection_id": connection_id})
        logger.info(f"Progress observer connected: {connection_id}")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self._connections.pop(connection_id, None) is not None:
            logger.info(f"Progress observer disconnected: {connection_id}")

    async def notify(self, connection_id: str, event: ProgressEvent) -> None:
        websocket = self._connections.get(connection_id)
        if websocket is None:
            raise LookupError(f"No progress connection '{connection_id}'")
        await websocket.send_json(event.model_dump())


# Global hub shared by the upload route and the websocket route
_hub: WebSocketProgressHub | None = None


def get_progress_hub() -> WebSocketProgressHub:
    global _hub
    if _hub is None:
        _hub = WebSocketProgressHub()
    return _hub
