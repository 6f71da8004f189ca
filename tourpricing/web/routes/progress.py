"""Upload progress websocket.

Routes:
- WS /ws/progress - Receive a connection id, then progress events for uploads naming it
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from tourpricing.notifications.websocket import WebSocketProgressHub, get_progress_hub

router = APIRouter(tags=["progress"])


@router.websocket("/ws/progress")
async def progress_socket(
    websocket: WebSocket,
    hub: WebSocketProgressHub = Depends(get_progress_hub),
):
    connection_id = await hub.connect(websocket)
    try:
        while True:
            # Client messages are ignored; reading keeps disconnects visible
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(connection_id)
