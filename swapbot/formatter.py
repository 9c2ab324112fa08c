"""HTML message formatting for Telegram.

  - format_bot_status():  one bot, stored config merged with live state (/status)
  - format_swap_alert():  a completed swap
  - format_alert():       a warning/error raised by a bot
"""

from __future__ import annotations

from decimal import Decimal
from html import escape
from typing import Any

from .config import MultiTargetConfig, SinglePairConfig
from .manager import BotListing


# ---------------------------------------------------------------------------
#  Status (for /status command)
# ---------------------------------------------------------------------------


def format_bot_status(listing: BotListing) -> str:
    """Full status of one bot."""
    state = "running" if listing.running else "stopped"
    header = f"<b>bot {escape(listing.bot_id)}</b>  <code>{listing.kind} · {state}</code>"

    if isinstance(listing.config, MultiTargetConfig):
        body = _format_multi(listing.config, listing.details)
    else:
        body = _format_single(listing.config, listing.details)
    return f"{header}\n\n{body}"


def _format_single(config: SinglePairConfig, details: dict[str, Any] | None) -> str:
    if details:
        src, dst = details["input_token"], details["output_token"]
        amount, target = details["amount"], details["target_amount"]
        trades = details["trade_count"]
    else:
        src, dst = config.input_token, config.output_token
        amount, target = config.input_amount, config.first_trade_price
        trades = 0

    lines = [
        f"pair             {src} → {dst}",
        f"amount           {_fp(amount)} {src}",
        f"target           {_fp(target)} {dst}",
    ]
    if details and details["current_amount"]:
        lines.append(
            f"current          {_fp(details['current_amount'])} {dst}"
            f"  ({details['difference']:+.2f}%)"
        )
    gain = config.target_gain_percentage
    lines.append(f"target gain      {f'{gain}%' if gain is not None else 'single trade'}")
    if config.stop_loss_percentage is not None:
        lines.append(f"stop loss        {config.stop_loss_percentage}%")
    lines.append(f"trades           {trades}")
    if details and details["waiting_for_confirmation"]:
        lines.append("<i>waiting for confirmation</i>")
    return "\n".join(lines)


def _format_multi(config: MultiTargetConfig, details: dict[str, Any] | None) -> str:
    if details:
        held, amount = details["held_token"], details["held_amount"]
        targets = details["targets"]
        differences = details["differences"]
        trades = details["trade_count"]
    else:
        held, amount = config.held_token, config.held_amount
        targets = config.target_amounts
        differences = {}
        trades = 0

    lines = [
        f"holding          {_fp(amount)} {held}",
        f"target gain      {config.target_gain_percentage}%",
        f"trades           {trades}",
        "",
        "<b>targets</b>",
    ]
    for symbol, target in targets.items():
        diff = differences.get(symbol)
        diff_str = f"  ({diff:+.2f}%)" if diff is not None else ""
        lines.append(f"  {symbol:<14} {_fp(target)}{diff_str}")
    if details and details["waiting_for_confirmation"]:
        lines.append("<i>waiting for confirmation</i>")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
#  Swaps & history
# ---------------------------------------------------------------------------


def format_swap_alert(swap: dict[str, Any]) -> str:
    txid = swap["txid"]
    return (
        f"<b>bot {escape(str(swap['bot_id']))} swapped</b>\n"
        f"{_fp(swap['in_amount'])} {swap['input_token']} → "
        f"{_fp(swap['out_amount'])} {swap['output_token']}\n"
        f'<a href="https://solscan.io/tx/{txid}">{txid[:8]}…{txid[-8:]}</a>'
    )


def format_transactions(rows: list[dict[str, Any]]) -> str:
    if not rows:
        return "no swaps recorded"
    lines = ["<b>recent swaps</b>"]
    for row in rows:
        lines.append(
            f"{row['timestamp'][:16].replace('T', ' ')}  bot {escape(str(row['bot_id']))}  "
            f"{_fp(row['in_amount'])} {row['input_token']} → "
            f"{_fp(row['out_amount'])} {row['output_token']}"
        )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
#  Alerts & startup messages
# ---------------------------------------------------------------------------


def format_alert(bot_id: str, message: str, level: str = "error") -> str:
    return f"<b>bot {escape(bot_id)} {level}</b>\n{escape(message)}"


def format_startup_message(running: list[str], stored: int) -> str:
    if not running:
        return f"swap daemon started — no active bots ({stored} stored)"
    return f"swap daemon started — running {', '.join(running)} ({stored} stored)"


# ---------------------------------------------------------------------------
#  Helpers
# ---------------------------------------------------------------------------


def _fp(value: float | Decimal | str) -> str:
    """Format an amount with thousands separator and smart decimals."""
    price = float(value)
    if price >= 1000.0:
        whole = int(price)
        frac = round((price - whole) * 100)
        formatted = f"{whole:,}"
        if frac > 0:
            return f"{formatted}.{frac:02d}"
        return formatted
    elif price >= 1.0:
        return f"{price:.2f}"
    elif price >= 0.01:
        return f"{price:.4f}"
    else:
        return f"{price:.6f}"
