"""Notification sink: routes bot events to the broadcast, history and Telegram.

Each channel is optional and isolated; a failure in one is logged and never
reaches the bot that emitted the event.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from .models import EVENT_LOG, EVENT_SWAP_LOGGED

if TYPE_CHECKING:
    from .events import EventBroadcaster
    from .history import SwapHistory
    from .telegram_bot import TelegramBot

logger = logging.getLogger(__name__)

_ALERT_LEVELS = ("warning", "error")


class Notifier:
    """NotificationSink implementation used by the daemon."""

    def __init__(
        self,
        broadcaster: EventBroadcaster | None = None,
        history: SwapHistory | None = None,
        telegram: TelegramBot | None = None,
        alert_cooldown_seconds: int = 300,
    ) -> None:
        self._broadcaster = broadcaster
        self._history = history
        self._telegram = telegram
        self._alert_cooldown = timedelta(seconds=alert_cooldown_seconds)
        self._alert_cooldowns: dict[str, datetime] = {}

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        if self._broadcaster is not None:
            try:
                self._broadcaster.broadcast(event, payload)
            except Exception as e:
                logger.error("Failed to broadcast %s event: %s", event, e)

        if event == EVENT_SWAP_LOGGED:
            await self._handle_swap(payload)
        elif event == EVENT_LOG and payload.get("level") in _ALERT_LEVELS:
            await self._maybe_send_alert(payload)

    async def _handle_swap(self, payload: dict[str, Any]) -> None:
        if self._history is not None:
            try:
                await self._history.record_swap(payload)
            except Exception as e:
                logger.error(
                    "Failed to record swap %s: %s", payload.get("txid"), e
                )
        if self._telegram is not None:
            try:
                await self._telegram.send_swap_alert(payload)
            except Exception as e:
                logger.error("Failed to send swap alert: %s", e)

    async def _maybe_send_alert(self, payload: dict[str, Any]) -> None:
        """Send a warning/error alert unless this bot is in cooldown."""
        if self._telegram is None:
            return

        bot_id = str(payload.get("bot_id", "?"))
        now = datetime.now()
        last_sent = self._alert_cooldowns.get(bot_id)
        if last_sent and (now - last_sent) < self._alert_cooldown:
            logger.debug("Alert for bot %s suppressed (cooldown)", bot_id)
            return

        self._alert_cooldowns[bot_id] = now
        try:
            await self._telegram.send_alert(
                bot_id, str(payload.get("message", "")), str(payload.get("level"))
            )
        except Exception as e:
            logger.error("Failed to send alert for bot %s: %s", bot_id, e)
