"""Wilder Relative Strength Index over candle closes.

Seeds average gain/loss with a simple mean of the first ``period`` changes,
then applies Wilder smoothing ``avg = (avg * (period - 1) + value) / period``
for every later change. With fewer than ``period`` changes the simple mean
over all available changes is used instead.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Sequence
from decimal import Decimal

#: Precision limit for RSI results (12 decimal places).
_RSI_QUANTIZE = Decimal("0.000000000001")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_NEUTRAL = Decimal("50")

DEFAULT_PERIOD = 14


def _average_gain_loss(
    closes: Sequence[Decimal], period: int
) -> tuple[Decimal, Decimal]:
    gains = []
    losses = []
    for prev, curr in zip(closes, closes[1:]):
        change = curr - prev
        gains.append(max(change, _ZERO))
        losses.append(max(-change, _ZERO))

    if len(gains) < period:
        return sum(gains, _ZERO) / len(gains), sum(losses, _ZERO) / len(losses)

    avg_gain = sum(gains[:period], _ZERO) / period
    avg_loss = sum(losses[:period], _ZERO) / period
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
    return avg_gain, avg_loss


def compute_rsi(
    closes: Sequence[Decimal], period: int = DEFAULT_PERIOD
) -> Decimal | None:
    """Compute the Wilder RSI of an ordered close sequence (oldest first).

    Args:
        closes: Candle closes ordered oldest to newest.
        period: RSI period (14 by default).

    Returns:
        RSI in [0, 100], 50 when there was no movement, or None when fewer
        than 2 closes are available.
    """
    if len(closes) < 2:
        return None

    avg_gain, avg_loss = _average_gain_loss(closes, period)

    if avg_gain == 0 and avg_loss == 0:
        return _NEUTRAL
    if avg_loss == 0:
        return _HUNDRED

    # Equivalent to 100 - 100 / (1 + avg_gain / avg_loss)
    rsi = (_HUNDRED * avg_gain / (avg_gain + avg_loss)).quantize(_RSI_QUANTIZE)
    return max(_ZERO, min(_HUNDRED, rsi))
