"""Exception hierarchy for the trading engine and its adapters.

Only configuration errors (and duplicate starts) are meant to reach callers
of the registry. Everything else is raised inside a bot's tick or swap task
and handled there.
"""

from __future__ import annotations


class SwapBotError(Exception):
    """Base class for all swapbot errors."""


class ConfigurationError(SwapBotError, ValueError):
    """Missing or invalid bot parameters; the bot never starts."""


class InvalidTargetGainError(ConfigurationError):
    """Target gain must be a positive number of basis points."""

    def __init__(self, gain_bps: object) -> None:
        super().__init__(f"Invalid target gain: {gain_bps} bps (must be > 0)")
        self.gain_bps = gain_bps


class BotAlreadyRunningError(SwapBotError):
    """A bot with the same identity is already registered."""

    def __init__(self, bot_id: str) -> None:
        super().__init__(f"Bot {bot_id} is already running")
        self.bot_id = bot_id


class ProviderError(SwapBotError):
    """Transient failure in a quote or ledger provider."""


class QuoteError(ProviderError):
    """The quote provider rejected the request or returned garbage."""


class QuoteTimeoutError(QuoteError):
    """The quote request did not finish in time."""


class SwapExecutionError(SwapBotError):
    """Building, signing, submitting or confirming a swap failed."""


class ConfirmationTimeoutError(SwapExecutionError):
    """The transaction was not confirmed before the provider's deadline."""


class SwapTimeoutError(SwapExecutionError):
    """Building or submitting the swap did not finish in time."""


class VerificationError(SwapBotError):
    """A swap reported success but its result cannot be trusted."""


class PersistenceError(SwapBotError):
    """The configuration store could not be read or written."""
