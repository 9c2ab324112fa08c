"""Single-pair round-trip bot.

The bot holds ``intent.amount`` of ``intent.input_token``. Once a quote for
that amount returns at least ``threshold_amount`` of the output token it
swaps, reverses the intent and sets the next threshold to the amount just
paid in, grown by the target gain. Without a target gain it swaps once and
stops.
"""

from __future__ import annotations

import logging
from typing import Any

from .bot_state import BotKind, BotStatus, SinglePairState
from .config import SinglePairConfig
from .errors import ConfigurationError, InvalidTargetGainError
from .models import DifferenceEvent, QuoteResult, Token, TradeIntent
from .numeric import (
    BPS_DENOMINATOR,
    bps_to_percent,
    from_units,
    percent_difference,
    percent_to_bps,
    stop_loss_breached,
    target_amount,
    to_units,
)
from .base_bot import PollingBot
from .tokens import TokenBook

logger = logging.getLogger(__name__)


class TradeBot(PollingBot):
    kind = BotKind.SINGLE

    def __init__(
        self,
        bot_id: str,
        input_token: Token,
        output_token: Token,
        amount: int,
        threshold_amount: int,
        target_gain_bps: int | None = None,
        stop_loss_bps: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(bot_id, **kwargs)

        if input_token is None or output_token is None:
            raise ConfigurationError(f"Bot {bot_id}: input and output tokens are required")
        if input_token.mint == output_token.mint:
            raise ConfigurationError(
                f"Bot {bot_id}: input and output token must differ ({input_token})"
            )
        if amount <= 0:
            raise ConfigurationError(f"Bot {bot_id}: initial amount must be positive")
        if threshold_amount <= 0:
            raise ConfigurationError(f"Bot {bot_id}: first trade price must be positive")
        if target_gain_bps is not None and target_gain_bps <= 0:
            raise InvalidTargetGainError(target_gain_bps)
        if stop_loss_bps is not None and not 0 < stop_loss_bps < BPS_DENOMINATOR:
            raise ConfigurationError(
                f"Bot {bot_id}: stop loss must be between 0 and 100%, "
                f"got {bps_to_percent(stop_loss_bps)}%"
            )

        self._check_interval_ms = kwargs.get("check_interval_ms")
        self.state = SinglePairState(
            bot_id=self.bot_id,
            intent=TradeIntent(input_token, output_token, amount),
            threshold_amount=threshold_amount,
            target_gain_bps=target_gain_bps,
            stop_loss_bps=stop_loss_bps,
        )

    @classmethod
    def from_config(
        cls, config: SinglePairConfig, tokens: TokenBook, **kwargs: Any
    ) -> TradeBot:
        """Build a bot from a persisted snapshot (human units)."""
        input_token = tokens.resolve(config.input_token)
        output_token = tokens.resolve(config.output_token)
        gain = config.target_gain_percentage
        stop_loss = config.stop_loss_percentage
        return cls(
            config.bot_id,
            input_token,
            output_token,
            amount=to_units(config.input_amount, input_token.decimals),
            threshold_amount=to_units(config.first_trade_price, output_token.decimals),
            target_gain_bps=percent_to_bps(gain) if gain is not None else None,
            stop_loss_bps=percent_to_bps(stop_loss) if stop_loss else None,
            check_interval_ms=config.check_interval_ms,
            **kwargs,
        )

    @property
    def intent(self) -> TradeIntent:
        return self.state.intent

    @property
    def threshold_amount(self) -> int:
        return self.state.threshold_amount

    # --- Evaluation ---

    async def _evaluate(self) -> None:
        state = self.state
        intent = state.intent
        quote = await self._fetch_quote(intent)
        if quote is None or not self.is_running:
            return

        current = quote.out_amount
        state.current_amount = current
        state.difference = percent_difference(current, state.threshold_amount)

        output = intent.output_token
        await self._emit_difference(
            DifferenceEvent(
                bot_id=self.bot_id,
                status=state.status.value,
                input_token=intent.input_token.symbol,
                output_token=output.symbol,
                current_amount=from_units(current, output.decimals),
                target_amount=from_units(state.threshold_amount, output.decimals),
                difference_pct=state.difference,
                trade_count=state.trade_count,
            )
        )

        if state.stop_loss_bps is not None and stop_loss_breached(
            current, state.threshold_amount, state.stop_loss_bps
        ):
            logger.warning(
                "Bot %s: stop loss hit (%.2f%% vs -%s%%)",
                self.bot_id,
                state.difference,
                bps_to_percent(state.stop_loss_bps),
            )
            await self._log(
                f"Stop loss triggered at {state.difference:.2f}%", level="warning"
            )
            await self.terminate("stop loss triggered")
            return

        if current >= state.threshold_amount:
            logger.info(
                "Bot %s: target reached, swapping %s %s -> %s",
                self.bot_id,
                from_units(intent.amount, intent.input_token.decimals),
                intent.input_token,
                output,
            )
            self._submit(quote)

    # --- Post-trade ---

    def apply_trade(self, quote: QuoteResult) -> None:
        """Reverse the intent after ``quote`` was executed.

        The next threshold is anchored to the amount paid in.
        """
        state = self.state
        state.intent = state.intent.reversed(quote.out_amount)
        if state.target_gain_bps is not None:
            state.threshold_amount = target_amount(quote.in_amount, state.target_gain_bps)

    async def _after_trade(self, quote: QuoteResult, txid: str) -> None:
        sold, bought = self._quote_tokens(quote)
        self.apply_trade(quote)
        self.state.trade_count += 1

        logger.info(
            "Bot %s: trade #%d done, next %s -> %s at %s",
            self.bot_id,
            self.state.trade_count,
            self.state.intent.input_token,
            self.state.intent.output_token,
            from_units(self.state.threshold_amount, self.state.intent.output_token.decimals),
        )
        await self._persist()
        await self._record_swap(sold, bought, quote, txid)

        if self.state.target_gain_bps is None:
            await self.terminate("single trade completed")

    def _quote_tokens(self, quote: QuoteResult) -> tuple[Token, Token]:
        intent = self.state.intent
        if quote.input_mint == intent.input_token.mint:
            return intent.input_token, intent.output_token
        return intent.output_token, intent.input_token

    # --- Views ---

    def snapshot(self) -> SinglePairConfig:
        state = self.state
        intent = state.intent
        gain = state.target_gain_bps
        stop_loss = state.stop_loss_bps
        return SinglePairConfig(
            bot_id=self.bot_id,
            input_token=intent.input_token.symbol,
            output_token=intent.output_token.symbol,
            input_amount=from_units(intent.amount, intent.input_token.decimals),
            first_trade_price=from_units(
                state.threshold_amount, intent.output_token.decimals
            ),
            target_gain_percentage=bps_to_percent(gain) if gain is not None else None,
            stop_loss_percentage=(
                bps_to_percent(stop_loss) if stop_loss is not None else None
            ),
            check_interval_ms=self._check_interval_ms,
            status="active" if state.status is not BotStatus.TERMINATED else "inactive",
        )

    def describe(self) -> dict[str, Any]:
        state = self.state
        intent = state.intent
        return {
            "bot_id": self.bot_id,
            "kind": self.kind.value,
            "status": state.status.value,
            "input_token": intent.input_token.symbol,
            "output_token": intent.output_token.symbol,
            "amount": from_units(intent.amount, intent.input_token.decimals),
            "current_amount": from_units(state.current_amount, intent.output_token.decimals),
            "target_amount": from_units(state.threshold_amount, intent.output_token.decimals),
            "difference": state.difference,
            "trade_count": state.trade_count,
            "waiting_for_confirmation": state.waiting_for_confirmation,
        }
