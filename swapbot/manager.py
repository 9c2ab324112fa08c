"""Bot lifecycle registry.

``BotManager`` is the one place that knows which bots are running. It builds
bots from persisted snapshots, keeps at most one running instance per bot id,
and keeps the store's ``active``/``inactive`` flag in step with reality.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .base_bot import PollingBot
from .config import BotActivity, EngineConfig
from .errors import BotAlreadyRunningError, ConfigurationError, SwapBotError
from .multi_bot import MultiBot
from .providers import (
    BotSnapshot,
    ConfigStore,
    LedgerProvider,
    NotificationSink,
    QuoteProvider,
)
from .tokens import TokenBook
from .trade_bot import TradeBot

logger = logging.getLogger(__name__)

_BOT_TYPES: dict[str, type[TradeBot] | type[MultiBot]] = {
    "single": TradeBot,
    "multi": MultiBot,
}


@dataclass
class BotListing:
    """One row of ``list_all``: a stored config merged with live status."""

    bot_id: str
    kind: str
    running: bool
    config: BotSnapshot
    details: dict[str, Any] | None = None

    @property
    def activity(self) -> BotActivity:
        return self.config.status


class BotManager:
    """Creates, tracks and stops bots."""

    def __init__(
        self,
        *,
        wallet: Any,
        ledger: LedgerProvider,
        quotes: QuoteProvider,
        store: ConfigStore,
        notifier: NotificationSink,
        tokens: TokenBook,
        engine: EngineConfig,
        fee_account: str | None = None,
        history: Any = None,
    ) -> None:
        self._wallet = wallet
        self._ledger = ledger
        self._quotes = quotes
        self._store = store
        self._notifier = notifier
        self._tokens = tokens
        self._engine = engine
        self._fee_account = fee_account
        self._history = history

        self._bots: dict[str, PollingBot] = {}
        self._lock = asyncio.Lock()

    @property
    def running_ids(self) -> list[str]:
        return list(self._bots)

    def get(self, bot_id: str) -> PollingBot | None:
        return self._bots.get(bot_id)

    def is_running(self, bot_id: str) -> bool:
        return bot_id in self._bots

    # --- Lifecycle ---

    async def start(self, config: BotSnapshot) -> PollingBot | None:
        """Build and start a bot from ``config``.

        Raises BotAlreadyRunningError if the id is already running and
        ConfigurationError if the config is invalid. Returns None when the
        bot fails to initialize.
        """
        async with self._lock:
            if config.bot_id in self._bots:
                raise BotAlreadyRunningError(config.bot_id)

            bot = self._build(config)
            if not await bot.start():
                logger.warning("Bot %s failed to start", config.bot_id)
                return None
            if not bot.is_running:
                return bot
            self._bots[bot.bot_id] = bot

        logger.info("Bot %s registered (%s)", bot.bot_id, bot.kind.value)
        await self._save(bot.snapshot())
        return bot

    async def start_by_id(self, bot_id: str) -> PollingBot | None:
        """Start a bot from its stored snapshot."""
        if bot_id in self._bots:
            raise BotAlreadyRunningError(bot_id)
        config = await self._store.load_config(bot_id)
        return await self.start(config)

    async def stop(self, bot_id: str) -> bool:
        """Stop a running bot. Unknown ids are ignored."""
        async with self._lock:
            bot = self._bots.pop(bot_id, None)
        if bot is None:
            logger.info("Bot %s is not running, nothing to stop", bot_id)
            return False

        await bot.terminate("stopped by operator")
        await self._mark(bot_id, "inactive")
        return True

    async def stop_all(self) -> None:
        for bot_id in list(self._bots):
            await self.stop(bot_id)

    async def resume_active(self) -> int:
        """Start every stored bot marked active. Returns how many started."""
        started = 0
        for config in await self._store.list_configs():
            if config.status != "active" or config.bot_id in self._bots:
                continue
            try:
                if await self.start(config) is not None:
                    started += 1
            except SwapBotError as e:
                logger.error("Could not resume bot %s: %s", config.bot_id, e)
        logger.info("Resumed %d active bot(s)", started)
        return started

    # --- Queries ---

    async def list_all(self) -> list[BotListing]:
        """Stored configs merged with live status."""
        rows: list[BotListing] = []
        seen: set[str] = set()
        for config in await self._store.list_configs():
            bot = self._bots.get(config.bot_id)
            rows.append(
                BotListing(
                    bot_id=config.bot_id,
                    kind=config.kind,
                    running=bot is not None and bot.is_running,
                    config=config,
                    details=bot.describe() if bot is not None else None,
                )
            )
            seen.add(config.bot_id)

        for bot_id, bot in self._bots.items():
            if bot_id not in seen:
                rows.append(
                    BotListing(
                        bot_id=bot_id,
                        kind=bot.kind.value,
                        running=bot.is_running,
                        config=bot.snapshot(),
                        details=bot.describe(),
                    )
                )
        return rows

    def get_status(self, bot_id: str) -> dict[str, Any]:
        bot = self._bots.get(bot_id)
        if bot is None:
            return {"bot_id": bot_id, "status": "stopped"}
        return bot.describe()

    async def list_transactions(self, limit: int = 20) -> list[dict[str, Any]]:
        if self._history is None:
            return []
        return await self._history.list_swaps(limit)

    # --- Config management ---

    async def update_config(self, config: BotSnapshot) -> None:
        """Replace a stored config; a running bot is stopped first."""
        await self.stop(config.bot_id)
        await self._store.save_config(
            config.bot_id, config.model_copy(update={"status": "inactive"})
        )

    async def delete_config(self, bot_id: str) -> None:
        await self.stop(bot_id)
        await self._store.delete_config(bot_id)

    # --- Internals ---

    def _build(self, config: BotSnapshot) -> PollingBot:
        bot_type = _BOT_TYPES.get(config.kind)
        if bot_type is None:
            raise ConfigurationError(f"Unknown bot kind: {config.kind}")
        return bot_type.from_config(
            config,
            self._tokens,
            wallet=self._wallet,
            ledger=self._ledger,
            quotes=self._quotes,
            store=self._store,
            notifier=self._notifier,
            engine=self._engine,
            fee_account=self._fee_account,
            on_terminate=self._on_bot_terminated,
        )

    async def _on_bot_terminated(self, bot: PollingBot, reason: str) -> None:
        # stop() has already removed the bot when the operator asked for it.
        if self._bots.get(bot.bot_id) is not bot:
            return
        del self._bots[bot.bot_id]
        logger.info("Bot %s removed from registry: %s", bot.bot_id, reason)
        await self._mark(bot.bot_id, "inactive")

    async def _mark(self, bot_id: str, status: BotActivity) -> None:
        try:
            await self._store.set_status(bot_id, status)
        except Exception as e:
            logger.error("Failed to mark bot %s %s: %s", bot_id, status, e)

    async def _save(self, snapshot: BotSnapshot) -> None:
        try:
            await self._store.save_config(snapshot.bot_id, snapshot)
        except Exception as e:
            logger.error("Failed to save config for bot %s: %s", snapshot.bot_id, e)
