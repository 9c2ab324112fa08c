"""Polling loop, guards and swap execution shared by both bot kinds.

A bot is a single-writer actor over its own state:

* one poll task ("timer") wakes once per check interval and runs ``tick``;
* a tick that decides to trade flips ``waiting_for_confirmation`` and spawns
  one swap task; until that task finishes every tick is a no-op;
* the swap task builds and submits the route, waits for confirmation and then
  hands the confirmed quote to the subclass's ``_after_trade``.

``terminate`` cancels the poll task before it awaits anything. An in-flight
swap task is left to finish; it sees the terminated status and does not touch
the bot's state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from .bot_state import BotKind, BotStatus, MultiTargetState, SinglePairState
from .config import EngineConfig
from .errors import (
    ConfigurationError,
    ConfirmationTimeoutError,
    ProviderError,
    SwapExecutionError,
    VerificationError,
)
from .models import (
    EVENT_DIFFERENCE,
    EVENT_LOG,
    EVENT_SWAP_LOGGED,
    DifferenceEvent,
    QuoteResult,
    SwapRecord,
    Token,
    TradeIntent,
)
from .numeric import from_units
from .providers import (
    BotSnapshot,
    ConfigStore,
    LedgerProvider,
    NotificationSink,
    QuoteProvider,
)

logger = logging.getLogger(__name__)

TerminationCallback = Callable[["PollingBot", str], Awaitable[None]]


class PollingBot(ABC):
    """Base class for TradeBot and MultiBot."""

    kind: BotKind
    state: SinglePairState | MultiTargetState

    def __init__(
        self,
        bot_id: str,
        *,
        wallet: Any,
        ledger: LedgerProvider,
        quotes: QuoteProvider,
        store: ConfigStore,
        notifier: NotificationSink,
        engine: EngineConfig,
        check_interval_ms: int | None = None,
        fee_account: str | None = None,
        on_terminate: TerminationCallback | None = None,
    ) -> None:
        if not bot_id:
            raise ConfigurationError("bot_id is required")
        if wallet is None:
            raise ConfigurationError(f"Bot {bot_id}: wallet is required")
        if ledger is None:
            raise ConfigurationError(f"Bot {bot_id}: ledger provider is required")
        if quotes is None:
            raise ConfigurationError(f"Bot {bot_id}: quote provider is required")

        interval_ms = check_interval_ms or engine.check_interval_ms
        if interval_ms <= 0:
            raise ConfigurationError(
                f"Bot {bot_id}: check interval must be positive, got {interval_ms}"
            )

        self.bot_id = str(bot_id)
        self.check_interval = interval_ms / 1000
        self.wallet_address: str | None = None

        self._wallet = wallet
        self._ledger = ledger
        self._quotes = quotes
        self._store = store
        self._notifier = notifier
        self._engine = engine
        self._fee_account = fee_account
        self._on_terminate = on_terminate

        self._last_check: float | None = None
        self._timer: asyncio.Task | None = None
        self._swap_task: asyncio.Task | None = None

    # --- Read-only views ---

    @property
    def status(self) -> BotStatus:
        return self.state.status

    @property
    def is_running(self) -> bool:
        return self.state.status is BotStatus.RUNNING

    @property
    def trade_count(self) -> int:
        return self.state.trade_count

    @property
    def waiting_for_confirmation(self) -> bool:
        return self.state.waiting_for_confirmation

    @property
    def pending_swap(self) -> asyncio.Task | None:
        """The in-flight swap task, if any."""
        if self._swap_task is not None and not self._swap_task.done():
            return self._swap_task
        return None

    @abstractmethod
    def snapshot(self) -> BotSnapshot:
        """Persistable projection of the current state."""

    @abstractmethod
    def describe(self) -> dict[str, Any]:
        """Live status for display."""

    # --- Lifecycle ---

    async def start(self) -> bool:
        """Resolve wallet/accounts and start polling.

        Returns False (and leaves the bot terminated) if initialization fails.
        """
        if self.state.status is not BotStatus.INITIALIZING:
            logger.warning(
                "Bot %s: start() called in state %s", self.bot_id, self.state.status.value
            )
            return False

        try:
            await self._initialize()
        except Exception as e:
            logger.error("Bot %s: initialization failed: %s", self.bot_id, e)
            self.state.status = BotStatus.TERMINATED
            await self._log(f"Initialization failed: {e}", level="error")
            return False

        self.state.status = BotStatus.RUNNING
        self._timer = asyncio.create_task(self._run(), name=f"bot-{self.bot_id}")
        logger.info(
            "Bot %s: started (%s, interval %.1fs)",
            self.bot_id,
            self.kind.value,
            self.check_interval,
        )
        await self._log("Bot started")
        return True

    async def _initialize(self) -> None:
        address = await self._ledger.resolve_wallet_address(self._wallet)
        if not address:
            raise ConfigurationError(
                "Error fetching public key. Make sure the keypair is set and valid."
            )
        self.wallet_address = address

    async def terminate(self, reason: str = "stopped") -> None:
        """Enter the terminal state. Idempotent."""
        if self.state.status is BotStatus.TERMINATED:
            return
        self.state.status = BotStatus.TERMINATED
        self._cancel_timer()

        logger.info("Bot %s: terminated (%s)", self.bot_id, reason)
        await self._log(f"Bot terminated: {reason}")
        if self._on_terminate is not None:
            try:
                await self._on_terminate(self, reason)
            except Exception as e:
                logger.error(
                    "Bot %s: termination callback failed: %s", self.bot_id, e
                )

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        # Never cancel ourselves; the loop exits on the status check.
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    # --- Poll loop ---

    async def _run(self) -> None:
        while self.state.status is BotStatus.RUNNING:
            delay = self._seconds_until_due()
            if delay > 0:
                await asyncio.sleep(delay)
                continue
            await self.tick()
        logger.info("Bot %s: price watch stopped", self.bot_id)

    def _seconds_until_due(self) -> float:
        if self._last_check is None:
            return 0.0
        return self._last_check + self.check_interval - time.monotonic()

    async def tick(self) -> None:
        """One polling step. Never raises."""
        if self.state.status is not BotStatus.RUNNING:
            self._cancel_timer()
            return

        now = time.monotonic()
        if self._last_check is not None and now - self._last_check < self.check_interval:
            return
        self._last_check = now

        if self.state.waiting_for_confirmation:
            logger.info("Bot %s: waiting for transaction confirmation...", self.bot_id)
            return

        try:
            await self._evaluate()
        except Exception as e:
            logger.error("Bot %s: error in price watch: %s", self.bot_id, e)
            await self._log(f"Error in price watch: {e}", level="error")

    @abstractmethod
    async def _evaluate(self) -> None:
        """Fetch quotes and decide whether to trade."""

    async def _fetch_quote(self, intent: TradeIntent) -> QuoteResult | None:
        """Quote ``intent`` with a timeout. Returns None on transient failure."""
        pair = f"{intent.input_token} -> {intent.output_token}"
        try:
            return await asyncio.wait_for(
                self._quotes.get_quote(
                    intent.input_token.mint,
                    intent.output_token.mint,
                    intent.amount,
                    intent.mode,
                ),
                timeout=self._engine.quote_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Bot %s: quote %s timed out after %.1fs",
                self.bot_id,
                pair,
                self._engine.quote_timeout_seconds,
            )
        except ProviderError as e:
            logger.warning("Bot %s: quote %s failed: %s", self.bot_id, pair, e)
        return None

    # --- Swap execution ---

    def _submit(self, quote: QuoteResult) -> asyncio.Task:
        """Start the swap for ``quote``; ticks are no-ops until it finishes."""
        self.state.waiting_for_confirmation = True
        self._swap_task = asyncio.create_task(
            self._execute_swap(quote), name=f"swap-{self.bot_id}"
        )
        return self._swap_task

    async def _execute_swap(self, quote: QuoteResult) -> None:
        try:
            txid = await self._quotes.build_and_submit_swap(
                quote, self.wallet_address, self._fee_account
            )
            logger.info("Bot %s: swap submitted, signature %s", self.bot_id, txid)

            if not await self._ledger.confirm_transaction(txid):
                raise SwapExecutionError(f"Transaction {txid} failed on chain")
            logger.info("Bot %s: transaction confirmed: %s", self.bot_id, txid)

            if self.state.status is not BotStatus.RUNNING:
                await self._record_late_swap(quote, txid)
                return

            await self._after_trade(quote, txid)
        except VerificationError as e:
            logger.error("Bot %s: swap verification failed: %s", self.bot_id, e)
            await self._log(f"Swap verification failed: {e}", level="error")
            await self.terminate(f"verification failed: {e}")
        except ConfirmationTimeoutError as e:
            logger.error("Bot %s: transaction timed out: %s", self.bot_id, e)
            await self._log(f"Transaction timed out: {e}", level="error")
        except (SwapExecutionError, ProviderError) as e:
            logger.error("Bot %s: swap execution failed: %s", self.bot_id, e)
            await self._log(f"Swap execution failed: {e}", level="error")
        except Exception as e:
            logger.exception("Bot %s: unexpected error during swap", self.bot_id)
            await self._log(f"Swap execution failed: {e}", level="error")
        finally:
            self.state.waiting_for_confirmation = False

    async def _record_late_swap(self, quote: QuoteResult, txid: str) -> None:
        """Log a swap that landed after termination without touching state."""
        logger.warning(
            "Bot %s: swap %s confirmed after termination; state unchanged",
            self.bot_id,
            txid,
        )
        await self._record_swap(*self._quote_tokens(quote), quote, txid)

    async def wait_for_swap(self) -> None:
        """Wait until the in-flight swap (if any) has finished."""
        task = self.pending_swap
        if task is not None:
            await task

    @abstractmethod
    async def _after_trade(self, quote: QuoteResult, txid: str) -> None:
        """Apply a confirmed swap to the bot's state."""

    @abstractmethod
    def _quote_tokens(self, quote: QuoteResult) -> tuple[Token, Token]:
        """Input and output Token objects for a quote this bot requested."""

    # --- Collaborator helpers (never raise) ---

    async def _persist(self) -> None:
        try:
            await self._store.save_config(self.bot_id, self.snapshot())
            logger.info("Bot %s: config updated after trade", self.bot_id)
        except Exception as e:
            logger.error("Bot %s: failed to update config: %s", self.bot_id, e)

    async def _record_swap(
        self, input_token: Token, output_token: Token, quote: QuoteResult, txid: str
    ) -> None:
        record = SwapRecord(
            bot_id=self.bot_id,
            input_token=input_token.symbol,
            output_token=output_token.symbol,
            in_amount=from_units(quote.in_amount, input_token.decimals),
            out_amount=from_units(quote.out_amount, output_token.decimals),
            txid=txid,
            timestamp=datetime.now(timezone.utc),
        )
        await self._emit(EVENT_SWAP_LOGGED, record.to_payload())

    async def _emit_difference(self, event: DifferenceEvent) -> None:
        await self._emit(EVENT_DIFFERENCE, event.to_payload())

    async def _log(self, message: str, level: str = "info") -> None:
        await self._emit(
            EVENT_LOG, {"bot_id": self.bot_id, "level": level, "message": message}
        )

    async def _emit(self, event: str, payload: dict[str, Any]) -> None:
        try:
            await self._notifier.emit(event, payload)
        except Exception as e:
            logger.error("Bot %s: failed to emit %s: %s", self.bot_id, event, e)
