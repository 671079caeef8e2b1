"""Candle aggregation -- pure aggregation, live builder and minute scheduler."""

from ohlcv.candles.aggregator import (
    apply_indicators_in_sequence,
    attach_indicators,
    build_candle,
)
from ohlcv.candles.builder import CandleBuilder
from ohlcv.candles.sample_map import SampleMap
from ohlcv.candles.scheduler import CandleScheduler

__all__ = [
    "CandleBuilder",
    "CandleScheduler",
    "SampleMap",
    "apply_indicators_in_sequence",
    "attach_indicators",
    "build_candle",
]
