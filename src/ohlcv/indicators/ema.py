"""Exponential Moving Average of candle closes, seeded with a simple mean.

Uses the recursive formula:
    multiplier = 2 / (period + 1)
    EMA_t = close_t * multiplier + EMA_{t-1} * (1 - multiplier)

The first EMA value is the simple mean of the first ``period`` closes, so
fewer than ``period`` closes produce no value. Each step is a single division
of a weighted sum, so it rounds once to the Decimal context precision
(28 significant digits) and keeps full relative precision for micro prices.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Sequence
from decimal import Decimal

DEFAULT_PERIOD = 14


def compute_ema(
    closes: Sequence[Decimal], period: int = DEFAULT_PERIOD
) -> Decimal | None:
    """Compute the EMA of an ordered close sequence (oldest first).

    Args:
        closes: Candle closes ordered oldest to newest.
        period: EMA period (14 by default, multiplier 2/15).

    Returns:
        The EMA after the last close, or None with fewer than ``period`` closes.
    """
    if len(closes) < period:
        return None

    ema = sum(closes[:period], Decimal("0")) / period
    for close in closes[period:]:
        # close * 2/(p+1) + ema * (p-1)/(p+1)
        ema = (close * 2 + ema * (period - 1)) / (period + 1)

    return ema
