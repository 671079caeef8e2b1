"""Pure candle aggregation and indicator attachment.

Shared by the live builder and the backfill orchestrator: both hand in an
explicit SampleMap and get back the same Candle value type. Nothing here
touches the store.

Indicator lookback: a candle's RSI/EMA is computed over the candles whose
period_end falls in [period_end - (lookback - 1) * duration, period_end),
followed by the candle itself. With the default lookback of 31 that is 30
previous candles + the current one, enough for a fully Wilder-smoothed RSI14.
"""

from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import replace
from decimal import Decimal

from ohlcv.candles.sample_map import SampleMap
from ohlcv.indicators.ema import compute_ema
from ohlcv.indicators.quality import RSI_FULL_LOOKBACK, expected_samples, rsi_quality, score
from ohlcv.indicators.rsi import compute_rsi
from ohlcv.models import Candle, Timeframe
from ohlcv.timeframes import duration_ms


def build_candle(
    asset_id: str,
    timeframe: Timeframe,
    period_end_ms: int,
    prices: SampleMap,
    sample_interval_ms: int,
    volumes: SampleMap | None = None,
) -> Candle | None:
    """Aggregate the samples in (period_end - duration, period_end] into a candle.

    The returned candle carries OHLC, volume and quality_factor but no
    indicators yet. Returns None when the window holds no price sample.

    Args:
        asset_id: Asset the samples belong to.
        timeframe: Candle timeframe.
        period_end_ms: Grid-aligned end of the bucket.
        prices: Price samples covering at least this bucket.
        sample_interval_ms: Nominal raw sample cadence, for quality scoring.
        volumes: Optional volume samples; their sum becomes the candle volume.
    """
    span = duration_ms(timeframe)
    window = prices.window(period_end_ms, span)
    if not window:
        return None

    values = [value for _, value in window]
    volume = Decimal("0")
    if volumes is not None:
        volume = sum((v for _, v in volumes.window(period_end_ms, span)), Decimal("0"))

    return Candle(
        asset_id=asset_id,
        timeframe=timeframe,
        period_end_ms=period_end_ms,
        open=values[0],
        high=max(values),
        low=min(values),
        close=values[-1],
        volume=volume,
        quality_factor=score(len(values), expected_samples(span, sample_interval_ms)),
    )


def lookback_start(candle: Candle, lookback: int = RSI_FULL_LOOKBACK) -> int:
    """Earliest period_end_ms of a previous candle inside candle's lookback."""
    return candle.period_end_ms - (lookback - 1) * duration_ms(candle.timeframe)


def attach_indicators(
    candle: Candle,
    previous: Iterable[Candle],
    lookback: int = RSI_FULL_LOOKBACK,
) -> Candle:
    """Return a copy of candle with rsi, rsi_quality and ema filled in.

    ``previous`` may contain candles outside the lookback; they are ignored.
    Insufficient history is not an error: rsi/ema become None and
    rsi_quality 0.
    """
    earliest = lookback_start(candle, lookback)
    history = sorted(
        (c for c in previous if earliest <= c.period_end_ms < candle.period_end_ms),
        key=lambda c: c.period_end_ms,
    )
    history.append(candle)

    closes = [c.close for c in history]
    rsi = compute_rsi(closes)
    quality = (
        rsi_quality(history, duration_ms(candle.timeframe))
        if rsi is not None
        else Decimal("0")
    )

    return replace(candle, rsi=rsi, rsi_quality=quality, ema=compute_ema(closes))


def apply_indicators_in_sequence(
    existing: Iterable[Candle],
    rebuilt: Sequence[Candle],
    lookback: int = RSI_FULL_LOOKBACK,
) -> list[Candle]:
    """Attach indicators to every rebuilt candle in a single ordered pass.

    ``existing`` are the stored candles of the same asset and timeframe
    around the rebuilt range; a rebuilt candle replaces an existing one with
    the same period_end. Walks the merged sequence once with a sliding
    time-bounded window, so each rebuilt candle sees exactly the history
    attach_indicators would see after the earlier rebuilt candles had been
    written.

    Returns the rebuilt candles, with indicators, ordered by period_end_ms.
    """
    merged = {c.period_end_ms: c for c in existing}
    rebuilt_ends = set()
    for candle in rebuilt:
        merged[candle.period_end_ms] = candle
        rebuilt_ends.add(candle.period_end_ms)

    window: deque[Candle] = deque()
    result = []
    for period_end in sorted(merged):
        candle = merged[period_end]
        earliest = lookback_start(candle, lookback)
        while window and window[0].period_end_ms < earliest:
            window.popleft()

        if period_end in rebuilt_ends:
            candle = attach_indicators(candle, window, lookback)
            result.append(candle)
        window.append(candle)

    return result
