"""Domain models shared by the bots, providers and notification sink.

Quote payloads follow the Jupiter v1 swap API; ``parse_quote`` keeps the raw
response around because the swap endpoint needs it back verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from .errors import QuoteError

EXACT_IN = "ExactIn"

# Notification sink event names
EVENT_DIFFERENCE = "difference"
EVENT_SWAP_LOGGED = "swapLogged"
EVENT_LOG = "log"


@dataclass(frozen=True)
class Token:
    """A tradable token as known to the token book."""

    symbol: str
    mint: str
    decimals: int

    def __str__(self) -> str:
        return self.symbol


@dataclass
class TradeIntent:
    """The trade a bot will attempt on its next trigger.

    ``amount`` is always in the input token's smallest unit.
    """

    input_token: Token
    output_token: Token
    amount: int
    mode: str = EXACT_IN

    def reversed(self, amount: int) -> TradeIntent:
        return TradeIntent(
            input_token=self.output_token,
            output_token=self.input_token,
            amount=amount,
            mode=self.mode,
        )


@dataclass(frozen=True)
class QuoteResult:
    """A priced route returned by the quote provider."""

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    mode: str = EXACT_IN
    price_impact_pct: float = 0.0
    raw: dict = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class BlockhashInfo:
    blockhash: str
    valid_until_height: int


@dataclass
class SwapRecord:
    """A completed swap, as logged to history and alerts."""

    bot_id: str
    input_token: str
    output_token: str
    in_amount: Decimal
    out_amount: Decimal
    txid: str
    timestamp: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "bot_id": self.bot_id,
            "input_token": self.input_token,
            "output_token": self.output_token,
            "in_amount": str(self.in_amount),
            "out_amount": str(self.out_amount),
            "txid": self.txid,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class DifferenceEvent:
    """How far a bot's current quote is from its target."""

    bot_id: str
    status: str
    input_token: str
    output_token: str
    current_amount: Decimal
    target_amount: Decimal
    difference_pct: float
    trade_count: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "bot_id": self.bot_id,
            "status": self.status,
            "input_token": self.input_token,
            "output_token": self.output_token,
            "current_amount": str(self.current_amount),
            "target_amount": str(self.target_amount),
            "difference_pct": round(self.difference_pct, 4),
            "trade_count": self.trade_count,
        }


def parse_quote(data: dict) -> QuoteResult:
    """Parse a Jupiter quote response into a QuoteResult."""
    try:
        in_amount = int(data["inAmount"])
        out_amount = int(data["outAmount"])
        input_mint = data["inputMint"]
        output_mint = data["outputMint"]
    except (KeyError, TypeError, ValueError) as e:
        raise QuoteError(f"Invalid quote response: {e!r}") from e

    if in_amount <= 0 or out_amount <= 0:
        raise QuoteError(
            f"Invalid quote amounts: in={in_amount} out={out_amount}"
        )

    return QuoteResult(
        input_mint=input_mint,
        output_mint=output_mint,
        in_amount=in_amount,
        out_amount=out_amount,
        mode=data.get("swapMode", EXACT_IN),
        price_impact_pct=float(data.get("priceImpactPct") or 0.0),
        raw=data,
    )
