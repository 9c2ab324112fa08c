"""Multi-target rotation bot.

Holds one token and a list of target amounts in other tokens. Every tick it
quotes the whole held balance into each target in order and swaps into the
first one whose target is met. After a trade the token it sold takes the
bought token's place in the target list, and all targets grow by the gain.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any

from .base_bot import PollingBot
from .bot_state import BotKind, BotStatus, MultiTargetState
from .config import MultiTargetConfig
from .errors import (
    ConfigurationError,
    InvalidTargetGainError,
    ProviderError,
    VerificationError,
)
from .models import DifferenceEvent, QuoteResult, Token, TradeIntent
from .numeric import (
    bps_to_percent,
    from_units,
    percent_difference,
    percent_to_bps,
    scale_amount,
    target_amount,
    to_units,
)
from .tokens import TokenBook

logger = logging.getLogger(__name__)


class MultiBot(PollingBot):
    kind = BotKind.MULTI

    def __init__(
        self,
        bot_id: str,
        held_token: Token,
        held_amount: Decimal,
        targets: dict[Token, Decimal],
        target_gain_bps: int,
        **kwargs: Any,
    ) -> None:
        super().__init__(bot_id, **kwargs)

        if held_token is None:
            raise ConfigurationError(f"Bot {bot_id}: held token is required")
        if not targets:
            raise ConfigurationError(f"Bot {bot_id}: at least one target is required")
        if held_token in targets:
            raise ConfigurationError(
                f"Bot {bot_id}: held token {held_token} cannot also be a target"
            )
        if to_units(held_amount, held_token.decimals) <= 0:
            raise ConfigurationError(f"Bot {bot_id}: held amount must be positive")
        for token, amount in targets.items():
            if amount <= 0:
                raise ConfigurationError(
                    f"Bot {bot_id}: target amount for {token} must be positive"
                )
        if target_gain_bps is None or target_gain_bps <= 0:
            raise InvalidTargetGainError(target_gain_bps)

        self._check_interval_ms = kwargs.get("check_interval_ms")
        self.state = MultiTargetState(
            bot_id=self.bot_id,
            held_token=held_token,
            held_amount=Decimal(held_amount),
            targets=dict(targets),
            target_gain_bps=target_gain_bps,
        )

    @classmethod
    def from_config(
        cls, config: MultiTargetConfig, tokens: TokenBook, **kwargs: Any
    ) -> MultiBot:
        targets = {
            tokens.resolve(key): Decimal(amount)
            for key, amount in config.target_amounts.items()
        }
        return cls(
            config.bot_id,
            tokens.resolve(config.held_token),
            held_amount=config.held_amount,
            targets=targets,
            target_gain_bps=percent_to_bps(config.target_gain_percentage),
            check_interval_ms=config.check_interval_ms,
            **kwargs,
        )

    @property
    def held_token(self) -> Token:
        return self.state.held_token

    @property
    def held_amount(self) -> Decimal:
        return self.state.held_amount

    @property
    def targets(self) -> dict[Token, Decimal]:
        return dict(self.state.targets)

    # --- Initialization ---

    async def _initialize(self) -> None:
        await super()._initialize()
        self.state.held_token_account = await self._fetch_token_account(
            self.state.held_token
        )

    async def _fetch_token_account(self, token: Token) -> str:
        """Token account lookup, retried with linear backoff."""
        retries = self._engine.init_retries
        for attempt in range(1, retries + 1):
            try:
                logger.info(
                    "Bot %s: fetching %s token account, attempt %d/%d",
                    self.bot_id,
                    token,
                    attempt,
                    retries,
                )
                return await self._ledger.get_token_account(self.wallet_address, token.mint)
            except Exception as e:
                logger.warning(
                    "Bot %s: token account fetch failed, attempt %d/%d: %s",
                    self.bot_id,
                    attempt,
                    retries,
                    e,
                )
                if attempt >= retries:
                    raise ProviderError(
                        f"Failed to fetch {token} token account after {retries} attempts"
                    ) from e
                await asyncio.sleep(self._engine.retry_delay_seconds * attempt)
        raise ProviderError(f"Failed to fetch {token} token account")

    # --- Evaluation ---

    async def _evaluate(self) -> None:
        state = self.state
        held = state.held_token
        amount = to_units(state.held_amount, held.decimals)

        misses: list[tuple[Token, Decimal, Decimal]] = []
        for token, target in list(state.targets.items()):
            quote = await self._fetch_quote(TradeIntent(held, token, amount))
            if not self.is_running:
                return
            if quote is None:
                logger.info("Bot %s: no quote for %s, skipping", self.bot_id, token)
                continue

            current = from_units(quote.out_amount, token.decimals)
            if current >= target:
                logger.info(
                    "Bot %s: target met for %s (%s >= %s), swapping %s %s",
                    self.bot_id,
                    token,
                    current,
                    target,
                    state.held_amount,
                    held,
                )
                self._submit(quote)
                return
            misses.append((token, target, current))

        for token, target, current in misses:
            diff = percent_difference(current, target)
            state.differences[token.symbol] = diff
            await self._emit_difference(
                DifferenceEvent(
                    bot_id=self.bot_id,
                    status=state.status.value,
                    input_token=held.symbol,
                    output_token=token.symbol,
                    current_amount=current,
                    target_amount=target,
                    difference_pct=diff,
                    trade_count=state.trade_count,
                )
            )

    # --- Post-trade ---

    def apply_trade(self, quote: QuoteResult, received: int) -> None:
        """Rotate the held token into the bought target.

        ``received`` is the amount (in the bought token's units) that actually
        landed in the wallet.
        """
        state = self.state
        sold = state.held_token
        bought = self._target_for_mint(quote.output_mint)
        if received <= 0:
            raise VerificationError(
                f"Received amount for {bought} is {received}, expected a positive value"
            )

        gain = state.target_gain_bps
        rotated: dict[Token, Decimal] = {}
        for token, amount in state.targets.items():
            if token == bought:
                # The sold token takes this slot, anchored to what was paid in.
                rotated[sold] = from_units(
                    target_amount(quote.in_amount, gain), sold.decimals
                )
            else:
                rotated[token] = scale_amount(amount, gain, token.decimals)

        state.targets = rotated
        state.held_token = bought
        state.held_amount = from_units(received, bought.decimals)
        state.differences.clear()

    async def _after_trade(self, quote: QuoteResult, txid: str) -> None:
        sold, bought = self._quote_tokens(quote)
        received = await self._received_amount(quote, txid)
        if not self.is_running:
            await self._record_late_swap(quote, txid)
            return

        self.apply_trade(quote, received)
        self.state.trade_count += 1
        logger.info(
            "Bot %s: trade #%d done, now holding %s %s",
            self.bot_id,
            self.state.trade_count,
            self.state.held_amount,
            bought,
        )

        try:
            self.state.held_token_account = await self._ledger.get_token_account(
                self.wallet_address, bought.mint
            )
        except Exception as e:
            logger.warning(
                "Bot %s: could not refresh %s token account: %s", self.bot_id, bought, e
            )

        if self.is_running:
            await self._persist()
        await self._record_swap(sold, bought, quote, txid)

    async def _received_amount(self, quote: QuoteResult, txid: str) -> int:
        try:
            received = await self._ledger.get_received_amount(
                txid, self.wallet_address, quote.output_mint
            )
        except Exception as e:
            logger.warning(
                "Bot %s: could not read received amount for %s: %s", self.bot_id, txid, e
            )
            received = None

        if received is None:
            logger.warning(
                "Bot %s: using quoted amount %d for %s", self.bot_id, quote.out_amount, txid
            )
            return quote.out_amount
        return received

    def _target_for_mint(self, mint: str) -> Token:
        for token in self.state.targets:
            if token.mint == mint:
                return token
        raise VerificationError(f"Swap output {mint} is not one of the targets")

    def _quote_tokens(self, quote: QuoteResult) -> tuple[Token, Token]:
        held = self.state.held_token
        if quote.input_mint == held.mint:
            return held, self._target_for_mint(quote.output_mint)
        # Already rotated; the sold token is now a target.
        sold = self._target_for_mint(quote.input_mint)
        return sold, held

    # --- Views ---

    def snapshot(self) -> MultiTargetConfig:
        state = self.state
        return MultiTargetConfig(
            bot_id=self.bot_id,
            held_token=state.held_token.symbol,
            held_amount=state.held_amount,
            target_amounts={token.symbol: amount for token, amount in state.targets.items()},
            target_gain_percentage=bps_to_percent(state.target_gain_bps),
            check_interval_ms=self._check_interval_ms,
            status="active" if state.status is not BotStatus.TERMINATED else "inactive",
        )

    def describe(self) -> dict[str, Any]:
        state = self.state
        return {
            "bot_id": self.bot_id,
            "kind": self.kind.value,
            "status": state.status.value,
            "held_token": state.held_token.symbol,
            "held_amount": state.held_amount,
            "targets": {token.symbol: amount for token, amount in state.targets.items()},
            "differences": dict(state.differences),
            "trade_count": state.trade_count,
            "waiting_for_confirmation": state.waiting_for_confirmation,
        }
