"""Per-bot mutable state.

Each running bot owns exactly one of these and is its only writer. The
registry and the Telegram commands only read them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from .models import Token, TradeIntent


class BotStatus(str, Enum):
    INITIALIZING = "initializing"
    RUNNING = "running"
    TERMINATED = "terminated"


class BotKind(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


@dataclass
class SinglePairState:
    """State of a single-pair round-trip bot."""

    bot_id: str
    intent: TradeIntent
    threshold_amount: int  # output token units
    target_gain_bps: int | None = None
    stop_loss_bps: int | None = None

    status: BotStatus = BotStatus.INITIALIZING
    trade_count: int = 0
    waiting_for_confirmation: bool = False

    # Display only
    current_amount: int = 0
    difference: float = 0.0


@dataclass
class MultiTargetState:
    """State of a multi-target rotation bot."""

    bot_id: str
    held_token: Token
    held_amount: Decimal
    targets: dict[Token, Decimal] = field(default_factory=dict)
    target_gain_bps: int = 0

    status: BotStatus = BotStatus.INITIALIZING
    trade_count: int = 0
    waiting_for_confirmation: bool = False
    held_token_account: str | None = None

    # Display only, keyed by target symbol
    differences: dict[str, float] = field(default_factory=dict)
