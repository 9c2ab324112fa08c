"""Fixed-point helpers for gain/loss math.

Amounts that feed a trade decision are integers in a token's smallest unit
(or exact ``Decimal`` human amounts). Percentages are stored as basis points.
Floats only come out of :func:`percent_difference`, which is for display.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal

from .errors import InvalidTargetGainError

BPS_DENOMINATOR = 10_000


def target_amount(base: int, gain_bps: int) -> int:
    """Return ``base`` grown by ``gain_bps``, rounding the gain down."""
    if gain_bps <= 0:
        raise InvalidTargetGainError(gain_bps)
    return base + (base * gain_bps) // BPS_DENOMINATOR


def percent_difference(current: int | Decimal, threshold: int | Decimal) -> float:
    """Signed distance of ``current`` from ``threshold`` in percent."""
    if threshold == 0:
        raise ValueError("threshold must be non-zero")
    return float((current - threshold) * 100 / Decimal(threshold))


def stop_loss_breached(current: int, threshold: int, stop_loss_bps: int) -> bool:
    """True when ``current`` fell below ``threshold * (1 - stop_loss)``."""
    return current * BPS_DENOMINATOR < threshold * (BPS_DENOMINATOR - stop_loss_bps)


def percent_to_bps(pct: float | int | Decimal | str) -> int:
    """Convert a human percentage (1.5 -> 150 bps), flooring sub-bps."""
    return int((Decimal(str(pct)) * 100).to_integral_value(rounding=ROUND_FLOOR))


def bps_to_percent(bps: int) -> Decimal:
    return Decimal(bps) / 100


def to_units(amount: Decimal | int | str, decimals: int) -> int:
    """Human amount -> smallest integer unit (floored)."""
    scaled = Decimal(str(amount)).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


def from_units(units: int, decimals: int) -> Decimal:
    """Smallest integer unit -> exact human amount."""
    return Decimal(units).scaleb(-decimals)


def scale_amount(amount: Decimal, gain_bps: int, decimals: int) -> Decimal:
    """Grow a human amount by ``gain_bps``.

    The result is rounded up at the token's precision, so a scaled target is
    never smaller than the amount it came from.
    """
    if gain_bps <= 0:
        raise InvalidTargetGainError(gain_bps)
    grown = amount * (BPS_DENOMINATOR + gain_bps) / BPS_DENOMINATOR
    quantum = Decimal(1).scaleb(-decimals)
    return grown.quantize(quantum, rounding=ROUND_CEILING)
