"""Backfill orchestration -- sample repair and candle recomputation."""

from ohlcv.backfill.guard import SingleFlight
from ohlcv.backfill.orchestrator import BackfillOrchestrator

__all__ = ["BackfillOrchestrator", "SingleFlight"]
