"""Telegram bot for operator commands and alerts.

Handles /status, /start, /stop, /swaps and /help, and provides the sender
interface used by the Notifier to push swap alerts and warnings.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import Application, CommandHandler, ContextTypes

from .config import TelegramConfig
from .errors import SwapBotError
from .formatter import (
    format_alert,
    format_bot_status,
    format_startup_message,
    format_swap_alert,
    format_transactions,
)

if TYPE_CHECKING:
    from .manager import BotManager

logger = logging.getLogger(__name__)

# Telegram message length limit
MAX_MESSAGE_LENGTH = 4096


class TelegramBot:
    """Telegram bot with command handlers and message sending capabilities."""

    def __init__(self, config: TelegramConfig) -> None:
        self._chat_id = int(config.chat_id)
        self._manager: BotManager | None = None  # Set via set_manager()
        self._app = Application.builder().token(config.bot_token).build()
        self._app.add_handler(CommandHandler("status", self._cmd_status))
        self._app.add_handler(CommandHandler("start", self._cmd_start))
        self._app.add_handler(CommandHandler("stop", self._cmd_stop))
        self._app.add_handler(CommandHandler("swaps", self._cmd_swaps))
        self._app.add_handler(CommandHandler("help", self._cmd_help))

    def set_manager(self, manager: BotManager) -> None:
        """Wire the registry reference (called after both are constructed)."""
        self._manager = manager

    async def start(self) -> None:
        """Start the Telegram bot polling loop."""
        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling()
        logger.info("Telegram bot polling started")

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        try:
            await self._app.updater.stop()
            await self._app.stop()
            await self._app.shutdown()
            logger.info("Telegram bot stopped")
        except Exception as e:
            logger.error("Error stopping Telegram bot: %s", e)

    # --- Command Handlers ---

    async def _cmd_status(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /status — all bots, or one with an id argument."""
        if not self._manager or not update.message:
            return

        args = context.args or []
        listings = await self._manager.list_all()

        if args:
            bot_id = args[0]
            match = [row for row in listings if row.bot_id == bot_id]
            if match:
                msg = format_bot_status(match[0])
            else:
                available = ", ".join(row.bot_id for row in listings)
                msg = f"unknown bot: {bot_id}\navailable: {available}"
        elif not listings:
            msg = "no bots configured"
        else:
            msg = ("\n\n" + "─" * 24 + "\n\n").join(
                format_bot_status(row) for row in listings
            )

        await self._send_safe(update.message.chat_id, msg)

    async def _cmd_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        if not self._manager or not update.message:
            return
        if not context.args:
            await self._send_safe(update.message.chat_id, "usage: /start &lt;bot_id&gt;")
            return

        bot_id = context.args[0]
        try:
            bot = await self._manager.start_by_id(bot_id)
        except SwapBotError as e:
            msg = f"could not start bot {bot_id}: {e}"
        else:
            msg = f"bot {bot_id} started" if bot else f"bot {bot_id} failed to initialize"
        await self._send_safe(update.message.chat_id, msg)

    async def _cmd_stop(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        if not self._manager or not update.message:
            return
        if not context.args:
            await self._send_safe(update.message.chat_id, "usage: /stop &lt;bot_id&gt;")
            return

        bot_id = context.args[0]
        stopped = await self._manager.stop(bot_id)
        msg = f"bot {bot_id} stopped" if stopped else f"bot {bot_id} is not running"
        await self._send_safe(update.message.chat_id, msg)

    async def _cmd_swaps(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        if not self._manager or not update.message:
            return
        args = context.args or []
        limit = int(args[0]) if args and args[0].isdigit() else 10
        rows = await self._manager.list_transactions(limit)
        await self._send_safe(update.message.chat_id, format_transactions(rows))

    async def _cmd_help(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /help command."""
        if not update.message:
            return

        msg = (
            "/status — status of all bots\n"
            "/status &lt;bot_id&gt; — status of one bot\n"
            "/start &lt;bot_id&gt; — start a stored bot\n"
            "/stop &lt;bot_id&gt; — stop a running bot\n"
            "/swaps [n] — most recent swaps\n"
            "/help — this message"
        )
        await update.message.reply_text(msg, parse_mode=ParseMode.HTML)

    # --- Sender Interface (called by Notifier / main) ---

    async def send_startup_message(self, running: list[str], stored: int) -> None:
        await self._send_safe(self._chat_id, format_startup_message(running, stored))

    async def send_swap_alert(self, swap: dict[str, Any]) -> None:
        await self._send_safe(self._chat_id, format_swap_alert(swap))

    async def send_alert(self, bot_id: str, message: str, level: str = "error") -> None:
        await self._send_safe(self._chat_id, format_alert(bot_id, message, level))

    # --- Internal Helpers ---

    async def _send_safe(self, chat_id: int, text: str) -> None:
        """Send a message, splitting if it exceeds Telegram's limit."""
        chunks = [text] if len(text) <= MAX_MESSAGE_LENGTH else self._split_message(text)
        for chunk in chunks:
            try:
                await self._app.bot.send_message(
                    chat_id, chunk, parse_mode=ParseMode.HTML
                )
            except Exception as e:
                logger.error("Failed to send Telegram message: %s", e)

    @staticmethod
    def _split_message(text: str) -> list[str]:
        """Split a long message into chunks that fit Telegram's limit."""
        chunks: list[str] = []
        current = ""

        for line in text.split("\n"):
            if len(current) + len(line) + 1 > MAX_MESSAGE_LENGTH:
                if current:
                    chunks.append(current.rstrip())
                current = line + "\n"
            else:
                current += line + "\n"

        if current.strip():
            chunks.append(current.rstrip())

        return chunks if chunks else [text[:MAX_MESSAGE_LENGTH]]
