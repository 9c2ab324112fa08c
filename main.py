"""Swap Bot Daemon entry point.

Runs the swap bots stored in the bots file, broadcasts their events over
WebSocket and (optionally) reports to Telegram.

Usage:
    python main.py configs/example.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from swapbot.config import load_config
from swapbot.events import EventBroadcaster
from swapbot.history import SwapHistory
from swapbot.jupiter import JupiterClient
from swapbot.ledger import SolanaLedger, load_keypair
from swapbot.logging_utils import configure_logging
from swapbot.manager import BotManager
from swapbot.notifier import Notifier
from swapbot.store import YamlConfigStore
from swapbot.telegram_bot import TelegramBot
from swapbot.tokens import TokenBook

logger = logging.getLogger(__name__)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Solana Swap Bot Daemon")
    parser.add_argument(
        "config_file",
        help="Path to the YAML configuration file",
    )
    args = parser.parse_args()

    # Load config
    config = load_config(args.config_file)
    configure_logging(config.logging.level, config.logging.file)

    keypair = load_keypair(config.wallet.private_key)
    tokens = TokenBook(config.tokens)
    logger.info(
        "Starting swap daemon for wallet %s with %d token(s)...",
        keypair.pubkey(),
        len(tokens),
    )

    # Create components
    ledger = SolanaLedger(config.rpc, keypair)
    jupiter = JupiterClient(config.jupiter, sender=ledger)
    store = YamlConfigStore(config.storage.bots_file)
    history = SwapHistory(config.storage.history_db)
    await history.connect()

    broadcaster = EventBroadcaster(config.events) if config.events.enabled else None
    telegram_bot = TelegramBot(config.telegram) if config.telegram else None
    notifier = Notifier(
        broadcaster=broadcaster,
        history=history,
        telegram=telegram_bot,
        alert_cooldown_seconds=(
            config.telegram.alert_cooldown_seconds if config.telegram else 300
        ),
    )
    manager = BotManager(
        wallet=keypair,
        ledger=ledger,
        quotes=jupiter,
        store=store,
        notifier=notifier,
        tokens=tokens,
        engine=config.engine,
        fee_account=config.jupiter.fee_account,
        history=history,
    )
    if telegram_bot:
        telegram_bot.set_manager(manager)

    # Signal handling for graceful shutdown
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    if broadcaster:
        await broadcaster.start()
    if telegram_bot:
        await telegram_bot.start()

    await manager.resume_active()
    if telegram_bot and config.telegram.startup_notification:
        stored = len(await store.list_configs())
        await telegram_bot.send_startup_message(manager.running_ids, stored)

    # Wait for shutdown signal
    await stop_event.wait()

    # Graceful shutdown; stopped bots are resumed on the next start
    logger.info("Shutting down...")
    running = manager.running_ids
    await manager.stop_all()
    for bot_id in running:
        await store.set_status(bot_id, "active")

    if telegram_bot:
        await telegram_bot.stop()
    if broadcaster:
        await broadcaster.stop()
    await jupiter.close()
    await ledger.close()
    await history.close()
    logger.info("Daemon stopped.")


if __name__ == "__main__":
    asyncio.run(main())
