"""Persistence layer.

Provides the SQLite database manager, the append-only raw sample store,
the overwrite-on-rebuild candle store, and the tracked asset registry.
"""

from ohlcv.store.asset_registry import AssetRegistry
from ohlcv.store.candle_store import CandleStore
from ohlcv.store.database import Database
from ohlcv.store.sample_store import SampleStore

__all__ = ["AssetRegistry", "CandleStore", "Database", "SampleStore"]
