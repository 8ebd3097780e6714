"""
SnapStream Backend — Live Broadcaster Tests
=============================================
"""

from unittest.mock import AsyncMock

import pytest

from snapstream.services.broadcaster import SnapBroadcaster


def _socket(fail: bool = False) -> AsyncMock:
    ws = AsyncMock()
    if fail:
        ws.send_json.side_effect = RuntimeError("connection closed")
    return ws


class TestSnapBroadcaster:

    @pytest.mark.asyncio
    async def test_connect_accepts_and_registers(self):
        broadcaster = SnapBroadcaster()
        ws = _socket()

        await broadcaster.connect(ws)

        ws.accept.assert_awaited_once()
        assert broadcaster.connection_count == 1

    @pytest.mark.asyncio
    async def test_publish_reaches_every_client(self):
        broadcaster = SnapBroadcaster()
        clients = [_socket(), _socket()]
        for ws in clients:
            await broadcaster.connect(ws)

        delivered = await broadcaster.publish_snap({"id": "abc"})

        assert delivered == 2
        for ws in clients:
            ws.send_json.assert_awaited_once_with({"type": "new_snap", "snap": {"id": "abc"}})

    @pytest.mark.asyncio
    async def test_failed_client_dropped_others_still_served(self):
        broadcaster = SnapBroadcaster()
        good, bad = _socket(), _socket(fail=True)
        await broadcaster.connect(good)
        await broadcaster.connect(bad)

        delivered = await broadcaster.broadcast({"type": "new_snap", "snap": {}})

        assert delivered == 1
        assert broadcaster.connection_count == 1
        good.send_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self):
        broadcaster = SnapBroadcaster()
        ws = _socket()
        await broadcaster.connect(ws)

        await broadcaster.disconnect(ws)
        await broadcaster.disconnect(ws)

        assert broadcaster.connection_count == 0
        assert await broadcaster.broadcast({"type": "new_snap"}) == 0
