"""Tests for SampleMap, pure candle aggregation and indicator attachment."""

from decimal import Decimal

from ohlcv.candles import (
    SampleMap,
    apply_indicators_in_sequence,
    attach_indicators,
    build_candle,
)
from ohlcv.models import Timeframe

DAY_START_MS = 1_704_067_200_000
MINUTE_MS = 60_000
PE = DAY_START_MS + 10 * MINUTE_MS


class TestSampleMap:
    """Membership and half-open window lookup."""

    def test_window_is_exclusive_start_inclusive_end(self) -> None:
        samples = SampleMap(
            [
                (PE - MINUTE_MS, Decimal("1")),
                (PE - MINUTE_MS + 1, Decimal("2")),
                (PE, Decimal("3")),
                (PE + 1, Decimal("4")),
            ]
        )
        assert samples.window(PE, MINUTE_MS) == [
            (PE - MINUTE_MS + 1, Decimal("2")),
            (PE, Decimal("3")),
        ]

    def test_add_keeps_existing_value(self) -> None:
        samples = SampleMap([(PE, Decimal("1"))])
        assert not samples.add(PE, Decimal("9"))
        assert samples.add(PE - 1000, Decimal("2"))
        assert PE - 1000 in samples
        assert len(samples) == 2
        assert samples.window(PE, MINUTE_MS) == [
            (PE - 1000, Decimal("2")),
            (PE, Decimal("1")),
        ]


class TestBuildCandle:
    """OHLC aggregation and quality_factor."""

    def test_empty_window_returns_none(self) -> None:
        samples = SampleMap([(PE - MINUTE_MS, Decimal("1"))])
        assert build_candle("SOL", Timeframe.M1, PE, samples, 5000) is None

    def test_ohlc_from_time_ordered_samples(self) -> None:
        samples = SampleMap(
            [
                (PE, Decimal("10.5")),
                (PE - 55_000, Decimal("10")),
                (PE - 30_000, Decimal("12")),
                (PE - 20_000, Decimal("9")),
                (PE - MINUTE_MS, Decimal("50")),  # previous bucket
            ]
        )
        candle = build_candle("SOL", Timeframe.M1, PE, samples, 5000)

        assert candle is not None
        assert candle.open == Decimal("10")
        assert candle.high == Decimal("12")
        assert candle.low == Decimal("9")
        assert candle.close == Decimal("10.5")
        assert candle.quality_factor == Decimal(4) / Decimal(12)
        assert candle.rsi is None
        assert candle.volume == Decimal("0")

    def test_half_coverage_scores_half(self) -> None:
        samples = SampleMap((PE - i * 10_000, Decimal("1")) for i in range(6))
        candle = build_candle("SOL", Timeframe.M1, PE, samples, 5000)
        assert candle is not None
        assert candle.quality_factor == Decimal("0.5")

    def test_volume_is_summed(self) -> None:
        prices = SampleMap([(PE - 5000, Decimal("1")), (PE, Decimal("2"))])
        volumes = SampleMap([(PE - 5000, Decimal("3.5")), (PE, Decimal("1.5"))])
        candle = build_candle("SOL", Timeframe.M1, PE, prices, 5000, volumes)
        assert candle is not None
        assert candle.volume == Decimal("5")


def _shells(make_candle, closes: list[int], start_ms: int = DAY_START_MS) -> list:
    return [
        make_candle(start_ms + (i + 1) * MINUTE_MS, str(close), quality_factor="1")
        for i, close in enumerate(closes)
    ]


CLOSES = [100, 101, 99, 102, 104, 103, 105, 104, 106, 108, 107, 109, 111, 110,
          112, 111, 113, 115, 114, 116, 115, 117, 119, 118, 120, 119, 121, 123,
          122, 124, 123, 125, 127, 126, 128, 127, 129, 131, 130, 132]


class TestAttachIndicators:
    """Lookback filtering and insufficient-history handling."""

    def test_no_history_leaves_indicators_empty(self, make_candle) -> None:
        candle = attach_indicators(make_candle(PE), [])
        assert candle.rsi is None
        assert candle.ema is None
        assert candle.rsi_quality == Decimal("0")

    def test_rising_history_gives_rsi_100(self, make_candle) -> None:
        shells = _shells(make_candle, list(range(100, 131)))
        current = attach_indicators(shells[-1], shells[:-1])
        assert current.rsi == Decimal("100")
        assert current.rsi_quality == Decimal("1")
        assert current.ema is not None

    def test_history_outside_lookback_is_ignored(self, make_candle) -> None:
        shells = _shells(make_candle, CLOSES)
        current = shells[-1]
        with_all = attach_indicators(current, shells[:-1])
        with_window = attach_indicators(current, shells[-31:-1])
        assert with_all == with_window


class TestApplyIndicatorsInSequence:
    """Bulk pass must match per-candle computation."""

    def test_bulk_equals_sequential_per_candle(self, make_candle) -> None:
        shells = _shells(make_candle, CLOSES)

        written = []
        for shell in shells:
            written.append(attach_indicators(shell, written))

        assert apply_indicators_in_sequence([], shells) == written

    def test_rebuilt_candles_replace_existing_in_history(self, make_candle) -> None:
        shells = _shells(make_candle, CLOSES)
        stale = [
            make_candle(c.period_end_ms, "1", quality_factor="0.1") for c in shells[20:]
        ]
        existing = shells[:20] + stale

        rebuilt = apply_indicators_in_sequence(existing, shells[20:])

        history = list(shells[:20])
        expected = []
        for shell in shells[20:]:
            candle = attach_indicators(shell, history)
            history.append(candle)
            expected.append(candle)

        assert rebuilt == expected
        assert all(c.close != Decimal("1") for c in rebuilt)

    def test_gaps_in_existing_history_are_respected(self, make_candle) -> None:
        shells = _shells(make_candle, CLOSES)
        existing = shells[:10] + shells[15:30]
        rebuilt = apply_indicators_in_sequence(existing, shells[30:])

        history = list(existing)
        expected = []
        for shell in shells[30:]:
            candle = attach_indicators(shell, history)
            history.append(candle)
            expected.append(candle)

        assert rebuilt == expected
