"""Tests for the WebSocket event broadcaster."""

from __future__ import annotations

import asyncio
import json

import pytest
import websockets

from swapbot.config import EventsConfig
from swapbot.events import EventBroadcaster


def test_broadcast_without_clients_is_noop() -> None:
    broadcaster = EventBroadcaster(EventsConfig())
    broadcaster.broadcast("difference", {"bot_id": "1"})
    assert broadcaster.client_count == 0


@pytest.mark.asyncio
async def test_stop_before_start() -> None:
    await EventBroadcaster(EventsConfig()).stop()


@pytest.mark.asyncio
async def test_client_receives_events(unused_tcp_port: int) -> None:
    broadcaster = EventBroadcaster(EventsConfig(host="127.0.0.1", port=unused_tcp_port))
    await broadcaster.start()
    try:
        async with websockets.connect(f"ws://127.0.0.1:{unused_tcp_port}") as ws:
            for _ in range(100):
                if broadcaster.client_count:
                    break
                await asyncio.sleep(0.01)
            assert broadcaster.client_count == 1

            broadcaster.broadcast("swapLogged", {"bot_id": "1", "txid": "sig1"})
            message = json.loads(await asyncio.wait_for(ws.recv(), timeout=2))

        assert message == {
            "event_type": "swapLogged",
            "data": {"bot_id": "1", "txid": "sig1"},
        }
    finally:
        await broadcaster.stop()
