"""
SnapStream Backend — Live Snap Broadcaster
============================================

What:  Fan-out of newly committed snaps to connected WebSocket clients.
How:   Keeps the set of open sockets in memory; `broadcast()` sends one JSON
       message to each and forgets any socket whose send fails.
Who:   WS /ws/snaps registers clients; POST /api/snaps schedules a
       broadcast after the upload has committed.

Delivery is fire-and-forget: no acknowledgements, no replay for clients that
connect later, and state is per process.
"""

import asyncio
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

NEW_SNAP_EVENT = "new_snap"


class SnapBroadcaster:
    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("Live client connected (%d open)", self.connection_count)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("Live client disconnected (%d open)", self.connection_count)

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """
        Send `message` to every connected client.

        Returns:
            Number of clients the message reached.
        """
        async with self._lock:
            targets = list(self._connections)

        delivered = 0
        dead = []
        for websocket in targets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping live client after failed send: %s", str(e))
                dead.append(websocket)

        if dead:
            async with self._lock:
                self._connections.difference_update(dead)

        logger.debug(
            "Broadcast %s to %d/%d clients", message.get("type"), delivered, len(targets)
        )
        return delivered

    async def publish_snap(self, snap: Dict[str, Any]) -> int:
        return await self.broadcast({"type": NEW_SNAP_EVENT, "snap": snap})
