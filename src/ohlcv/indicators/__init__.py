"""Indicator engine and quality scoring.

Pure functions of their input sequences: recomputing from the same closes
always yields the same values.
"""

from ohlcv.indicators.ema import compute_ema
from ohlcv.indicators.quality import count_gaps, expected_samples, rsi_quality, score
from ohlcv.indicators.rsi import compute_rsi

__all__ = [
    "compute_ema",
    "compute_rsi",
    "count_gaps",
    "expected_samples",
    "rsi_quality",
    "score",
]
