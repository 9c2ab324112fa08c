"""Tests for Notifier routing and alert cooldown."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from swapbot.models import EVENT_DIFFERENCE, EVENT_LOG, EVENT_SWAP_LOGGED
from swapbot.notifier import Notifier

SWAP = {
    "bot_id": "1",
    "input_token": "USDC",
    "output_token": "JUP",
    "in_amount": "1",
    "out_amount": "1.01",
    "txid": "sig1",
    "timestamp": "2024-01-01T00:00:00",
}


def _channels() -> tuple[MagicMock, AsyncMock, AsyncMock]:
    broadcaster = MagicMock()
    history = AsyncMock()
    telegram = AsyncMock()
    return broadcaster, history, telegram


class TestRouting:
    @pytest.mark.asyncio
    async def test_every_event_is_broadcast(self) -> None:
        broadcaster, history, telegram = _channels()
        notifier = Notifier(broadcaster, history, telegram)

        await notifier.emit(EVENT_DIFFERENCE, {"bot_id": "1"})

        broadcaster.broadcast.assert_called_once_with(EVENT_DIFFERENCE, {"bot_id": "1"})
        history.record_swap.assert_not_awaited()
        telegram.send_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_swap_goes_to_history_and_telegram(self) -> None:
        broadcaster, history, telegram = _channels()
        notifier = Notifier(broadcaster, history, telegram)

        await notifier.emit(EVENT_SWAP_LOGGED, SWAP)

        history.record_swap.assert_awaited_once_with(SWAP)
        telegram.send_swap_alert.assert_awaited_once_with(SWAP)

    @pytest.mark.asyncio
    async def test_channel_failures_are_isolated(self) -> None:
        broadcaster, history, telegram = _channels()
        broadcaster.broadcast.side_effect = RuntimeError("socket gone")
        history.record_swap.side_effect = RuntimeError("disk full")
        notifier = Notifier(broadcaster, history, telegram)

        await notifier.emit(EVENT_SWAP_LOGGED, SWAP)

        telegram.send_swap_alert.assert_awaited_once_with(SWAP)

    @pytest.mark.asyncio
    async def test_without_channels(self) -> None:
        await Notifier().emit(EVENT_SWAP_LOGGED, SWAP)

    @pytest.mark.asyncio
    async def test_info_logs_are_not_alerted(self) -> None:
        _, _, telegram = _channels()
        notifier = Notifier(telegram=telegram)

        await notifier.emit(EVENT_LOG, {"bot_id": "1", "level": "info", "message": "hi"})

        telegram.send_alert.assert_not_awaited()


class TestAlertCooldown:
    @pytest.mark.asyncio
    async def test_warning_alerted_once_per_cooldown(self) -> None:
        _, _, telegram = _channels()
        notifier = Notifier(telegram=telegram, alert_cooldown_seconds=300)
        event = {"bot_id": "1", "level": "warning", "message": "stop-loss"}

        await notifier.emit(EVENT_LOG, event)
        await notifier.emit(EVENT_LOG, event)

        telegram.send_alert.assert_awaited_once_with("1", "stop-loss", "warning")

    @pytest.mark.asyncio
    async def test_cooldown_is_per_bot(self) -> None:
        _, _, telegram = _channels()
        notifier = Notifier(telegram=telegram)

        await notifier.emit(EVENT_LOG, {"bot_id": "1", "level": "error", "message": "a"})
        await notifier.emit(EVENT_LOG, {"bot_id": "2", "level": "error", "message": "b"})

        assert telegram.send_alert.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_cooldown(self) -> None:
        _, _, telegram = _channels()
        notifier = Notifier(telegram=telegram, alert_cooldown_seconds=0)
        event = {"bot_id": "1", "level": "error", "message": "boom"}

        await notifier.emit(EVENT_LOG, event)
        await notifier.emit(EVENT_LOG, event)

        assert telegram.send_alert.await_count == 2
