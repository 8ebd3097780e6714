"""
SnapStream Backend — Live Snap Channel
========================================

What:  WS /ws/snaps. Every connected client receives
       {"type": "new_snap", "snap": {...}} after each committed upload.
How:   The socket is registered with the app's SnapBroadcaster and kept
       open by reading (and ignoring) client frames until it disconnects.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from snapstream.dependencies import get_broadcaster
from snapstream.services.broadcaster import SnapBroadcaster

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Live"])


@router.websocket("/ws/snaps")
async def live_snaps(
    websocket: WebSocket,
    broadcaster: SnapBroadcaster = Depends(get_broadcaster),
) -> None:
    await broadcaster.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(websocket)
