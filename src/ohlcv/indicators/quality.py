"""Data-quality scoring for candles and their RSI.

A candle's quality_factor is the fraction of expected raw samples actually
observed in its bucket. An RSI's quality combines how much history backed it,
how many candles were missing from that history, and the quality of the
candles it was computed from (recent candles weighted up to 2x).

CRITICAL: All computations use Decimal. Never use float.
"""

from collections.abc import Sequence
from decimal import Decimal

from ohlcv.models import Candle

_ZERO = Decimal("0")
_ONE = Decimal("1")

#: Candles needed for a fully Wilder-smoothed RSI14: 30 previous + current.
RSI_FULL_LOOKBACK = 31

#: Missing candles at which the gap penalty reaches zero.
MAX_GAPS = 30

#: A consecutive pair further apart than this multiple of the duration is a gap.
GAP_TOLERANCE = Decimal("1.1")


def clamp_unit(value: Decimal) -> Decimal:
    """Clamp a score into [0, 1]."""
    return max(_ZERO, min(_ONE, value))


def score(observed: int, expected: Decimal | int) -> Decimal:
    """Coverage score: observed / expected clamped to [0, 1].

    A non-positive expected count yields 0.
    """
    expected = Decimal(expected)
    if expected <= 0:
        return _ZERO
    return clamp_unit(Decimal(observed) / expected)


def expected_samples(period_duration_ms: int, sample_interval_ms: int) -> Decimal:
    """Number of raw samples a fully-covered bucket holds."""
    return Decimal(period_duration_ms) / Decimal(sample_interval_ms)


def count_gaps(period_ends: Sequence[int], duration_ms: int) -> int:
    """Count candles missing between consecutive period ends.

    For each consecutive pair whose delta exceeds 1.1x the duration, adds
    floor(delta / duration) - 1 missed periods.
    """
    gaps = 0
    threshold = GAP_TOLERANCE * duration_ms
    for prev, curr in zip(period_ends, period_ends[1:]):
        delta = curr - prev
        if delta > threshold:
            gaps += delta // duration_ms - 1
    return gaps


def rsi_quality(candles: Sequence[Candle], duration_ms: int) -> Decimal:
    """Composite quality of an RSI computed over ``candles`` (oldest first).

    count_factor x gap_penalty x weighted_quality, where:
    - count_factor = min(1, N / 31)
    - gap_penalty = max(0, 1 - gaps / 30)
    - weighted_quality = weighted mean of quality_factor over the N - 1
      non-first candles, weight(i) = 1 + i / N

    Fewer than 2 candles yields 0.
    """
    n = len(candles)
    if n < 2:
        return _ZERO

    count_factor = min(_ONE, Decimal(n) / RSI_FULL_LOOKBACK)

    gaps = count_gaps([c.period_end_ms for c in candles], duration_ms)
    gap_penalty = max(_ZERO, _ONE - Decimal(gaps) / MAX_GAPS)

    weighted_sum = _ZERO
    total_weight = _ZERO
    for i in range(1, n):
        weight = _ONE + Decimal(i) / n
        weighted_sum += candles[i].quality_factor * weight
        total_weight += weight
    weighted_quality = weighted_sum / total_weight

    return clamp_unit(count_factor * gap_penalty * weighted_quality)
