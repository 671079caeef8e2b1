"""Timeframe grid arithmetic.

Every supported timeframe divides a UTC day evenly and the Unix epoch starts
at UTC midnight, so grid alignment reduces to ``timestamp % duration == 0``:
1h boundaries have minute == 0, 4h boundaries have hour % 4 == 0, 1d
boundaries fall on 00:00 UTC.
"""

from ohlcv.exceptions import ValidationError
from ohlcv.models import Timeframe

MINUTE_MS = 60_000

TIMEFRAME_DURATION_MS: dict[Timeframe, int] = {
    Timeframe.M1: MINUTE_MS,
    Timeframe.M5: 5 * MINUTE_MS,
    Timeframe.M15: 15 * MINUTE_MS,
    Timeframe.H1: 60 * MINUTE_MS,
    Timeframe.H4: 240 * MINUTE_MS,
    Timeframe.D1: 1440 * MINUTE_MS,
}


def parse_timeframe(value: str | Timeframe) -> Timeframe:
    """Convert a timeframe label like "15m" into a Timeframe.

    Raises:
        ValidationError: If the label is not a supported timeframe.
    """
    if isinstance(value, Timeframe):
        return value
    try:
        return Timeframe(value)
    except ValueError:
        raise ValidationError(f"Unknown timeframe: {value!r}") from None


def duration_ms(timeframe: Timeframe) -> int:
    """Return the bucket width of a timeframe in milliseconds."""
    return TIMEFRAME_DURATION_MS[timeframe]


def is_period_boundary(timestamp_ms: int, timeframe: Timeframe) -> bool:
    """Whether timestamp_ms is a valid period end for timeframe.

    Used by the live scheduler once per tick for each timeframe.
    """
    return timestamp_ms % duration_ms(timeframe) == 0


def align_to_grid(timestamp_ms: int, timeframe: Timeframe) -> int:
    """Floor timestamp_ms to the nearest boundary of timeframe's grid."""
    return timestamp_ms - timestamp_ms % duration_ms(timeframe)


def period_ends(start_ms: int, end_ms: int, timeframe: Timeframe) -> list[int]:
    """Enumerate every grid boundary from align(start_ms) up to end_ms inclusive.

    The first boundary may precede start_ms (the start is floored to the
    grid), so the candle containing start_ms is covered.
    """
    step = duration_ms(timeframe)
    current = align_to_grid(start_ms, timeframe)
    ends = []
    while current <= end_ms:
        ends.append(current)
        current += step
    return ends
