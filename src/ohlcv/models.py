"""Shared data models for the OHLCV candle engine.

CRITICAL: All prices, volumes, quality factors and indicator values use
Decimal. Never use float for them. All timestamps are Unix milliseconds (UTC).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class Timeframe(str, Enum):
    """Candle bucket width on a fixed UTC grid."""

    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"


class Measurement(str, Enum):
    """Raw sample series kept in the sample store."""

    PRICE = "price"
    VOLUME = "volume"


@dataclass
class Asset:
    """A tracked asset as supplied by the asset registry.

    venue_id is the upstream pool/market that history is read from. It is
    resolved lazily and cached back on the registry record.
    """

    asset_id: str
    symbol: str
    venue_id: str | None = None
    is_active: bool = True


@dataclass
class PriceSample:
    """A single raw sample. Immutable once written, unique per timestamp."""

    asset_id: str
    timestamp_ms: int
    price: Decimal


@dataclass
class Candle:
    """One OHLCV aggregate for (asset_id, timeframe, period_end_ms).

    period_end_ms is always aligned to the timeframe grid. Rebuilding a
    candle overwrites the stored version; no history is kept.
    """

    asset_id: str
    timeframe: Timeframe
    period_end_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")
    quality_factor: Decimal = Decimal("0")  # 0-1
    rsi: Decimal | None = None  # 0-100, None when not computable
    rsi_quality: Decimal = Decimal("0")  # 0-1
    ema: Decimal | None = None

    @property
    def key(self) -> tuple[str, str, int]:
        """Store key: (asset_id, timeframe, period_end_ms)."""
        return (self.asset_id, self.timeframe.value, self.period_end_ms)


@dataclass
class HistoryBar:
    """A single upstream minute bar.

    timestamp_ms is the bar's open time as reported by the source.
    """

    timestamp_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")


@dataclass
class BackfillWindow:
    """Ephemeral backfill request. asset_id is "all" for the all-assets run."""

    asset_id: str
    start_ms: int
    end_ms: int


@dataclass
class TimeframeStats:
    """Phase 2 outcome for one timeframe.

    no_data counts periods that needed a rebuild but had no samples, so no
    candle could be produced for them.
    """

    timeframe: Timeframe
    periods_checked: int = 0
    created: int = 0
    recalculated: int = 0
    skipped: int = 0
    no_data: int = 0


@dataclass
class BackfillResult:
    """Outcome of a single-asset backfill. Returned, never persisted."""

    asset_id: str
    start_ms: int
    end_ms: int
    symbol: str | None = None
    bars_fetched: int = 0
    samples_inserted: int = 0
    samples_skipped: int = 0
    candles_created: int = 0
    candles_recalculated: int = 0
    candles_skipped: int = 0
    timeframes: list[TimeframeStats] = field(default_factory=list)
    duration_seconds: float = 0.0
    success: bool = False
    error: str | None = None
    error_type: str | None = None

    def add_timeframe(self, stats: TimeframeStats) -> None:
        """Roll one timeframe's stats up into the window-level counters."""
        self.timeframes.append(stats)
        self.candles_created += stats.created
        self.candles_recalculated += stats.recalculated
        self.candles_skipped += stats.skipped


@dataclass
class BackfillSummary:
    """Outcome of an all-assets backfill."""

    start_ms: int
    end_ms: int
    per_asset: list[BackfillResult] = field(default_factory=list)

    @property
    def total_assets(self) -> int:
        return len(self.per_asset)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.per_asset if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.per_asset if not r.success)


@dataclass
class BackfillStatus:
    """Current orchestrator state for the API layer."""

    is_running: bool
    quality_threshold: Decimal
