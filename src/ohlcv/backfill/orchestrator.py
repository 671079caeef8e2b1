"""Two-phase backfill: repair raw samples from history, then rebuild candles.

Phase 1 fetches minute bars from the asset's venue and inserts the ones the
sample store does not already hold. Phase 2 walks every configured timeframe
over the window and rebuilds each candle that is missing or below the quality
threshold, reading samples from the single in-memory map loaded in phase 1.

Running a backfill twice over the same window is idempotent: the second run
inserts no samples and rebuilds no candle that the first run brought above
the threshold.

At most one backfill (single asset or all assets) runs per process.
"""

import time

import structlog

from ohlcv.backfill.guard import SingleFlight
from ohlcv.candles.aggregator import apply_indicators_in_sequence, build_candle
from ohlcv.candles.sample_map import SampleMap
from ohlcv.config import BackfillSettings, CollectorSettings
from ohlcv.exceptions import ConcurrencyError, NotFoundError, ValidationError
from ohlcv.history.fetcher import HistoryFetcher
from ohlcv.logging import get_logger
from ohlcv.models import (
    Asset,
    BackfillResult,
    BackfillStatus,
    BackfillSummary,
    BackfillWindow,
    Candle,
    Measurement,
    Timeframe,
    TimeframeStats,
)
from ohlcv.store.asset_registry import AssetRegistry
from ohlcv.store.candle_store import CandleStore
from ohlcv.store.sample_store import SampleStore
from ohlcv.timeframes import duration_ms, parse_timeframe, period_ends

logger = get_logger(__name__)

_HOUR_MS = 3_600_000
_DAY_MS = 24 * _HOUR_MS


class BackfillOrchestrator:
    """Repairs samples and candles for one asset or all active assets.

    Args:
        registry: Asset registry (active list, venue cache).
        samples: Raw sample store.
        candles: Candle store.
        fetcher: Upstream history fetcher.
        collector_settings: Timeframes, sample cadence, volume, lookback.
        backfill_settings: Quality threshold.
    """

    def __init__(
        self,
        registry: AssetRegistry,
        samples: SampleStore,
        candles: CandleStore,
        fetcher: HistoryFetcher,
        collector_settings: CollectorSettings,
        backfill_settings: BackfillSettings,
    ) -> None:
        self._registry = registry
        self._samples = samples
        self._candles = candles
        self._fetcher = fetcher
        self._collector = collector_settings
        self._settings = backfill_settings
        self._timeframes = [parse_timeframe(tf) for tf in collector_settings.timeframes]
        self._guard = SingleFlight("backfill")

    # ──────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────

    def get_backfill_status(self) -> BackfillStatus:
        return BackfillStatus(
            is_running=self._guard.is_running,
            quality_threshold=self._settings.quality_threshold,
        )

    async def run_backfill(
        self, asset_id: str, start_ms: int, end_ms: int
    ) -> BackfillResult:
        """Backfill one asset over [start_ms, end_ms].

        Raises:
            ValidationError: If start_ms >= end_ms.
            ConcurrencyError: If another backfill is in flight.
            NotFoundError: If the asset is unknown or inactive.

        Any failure after the asset is found is reported on the returned
        result (success=False) instead of raised.
        """
        window = self._validate_window(asset_id, start_ms, end_ms)
        self._acquire()
        try:
            asset = await self._registry.get_asset(asset_id)
            if asset is None or not asset.is_active:
                raise NotFoundError(f"Asset {asset_id} is unknown or inactive")
            return await self._backfill_asset(asset, window)
        finally:
            self._guard.release()

    async def run_backfill_all(self, start_ms: int, end_ms: int) -> BackfillSummary:
        """Backfill every active asset sequentially.

        A failing asset is recorded in the summary and does not stop the run.

        Raises:
            ValidationError: If start_ms >= end_ms.
            ConcurrencyError: If another backfill is in flight.
        """
        self._validate_window("all", start_ms, end_ms)
        self._acquire()
        try:
            assets = await self._registry.list_active_assets()
            logger.info(
                "backfill_all_starting",
                assets=len(assets),
                start_ms=start_ms,
                end_ms=end_ms,
            )

            summary = BackfillSummary(start_ms=start_ms, end_ms=end_ms)
            for asset in assets:
                asset_window = BackfillWindow(asset.asset_id, start_ms, end_ms)
                summary.per_asset.append(await self._backfill_asset(asset, asset_window))

            logger.info(
                "backfill_all_complete",
                total=summary.total_assets,
                successful=summary.successful,
                failed=summary.failed,
            )
            return summary
        finally:
            self._guard.release()

    async def backfill_recent(
        self,
        asset_id: str,
        hours: int | None = None,
        days: int | None = None,
    ) -> BackfillResult:
        """Backfill the last ``hours`` and/or ``days`` up to now."""
        span_ms = (hours or 0) * _HOUR_MS + (days or 0) * _DAY_MS
        if span_ms <= 0:
            raise ValidationError("backfill_recent needs a positive hours or days")
        end_ms = int(time.time() * 1000)
        return await self.run_backfill(asset_id, end_ms - span_ms, end_ms)

    # ──────────────────────────────────────────────
    # Run wrapper
    # ──────────────────────────────────────────────

    def _validate_window(self, asset_id: str, start_ms: int, end_ms: int) -> BackfillWindow:
        if start_ms >= end_ms:
            raise ValidationError(
                f"Backfill start ({start_ms}) must be before end ({end_ms})"
            )
        return BackfillWindow(asset_id=asset_id, start_ms=start_ms, end_ms=end_ms)

    def _acquire(self) -> None:
        if not self._guard.try_acquire():
            logger.warning("backfill_rejected_already_running")
            raise ConcurrencyError("A backfill is already running")

    async def _backfill_asset(self, asset: Asset, window: BackfillWindow) -> BackfillResult:
        """Run both phases for one asset, converting failures into the result."""
        result = BackfillResult(
            asset_id=asset.asset_id,
            start_ms=window.start_ms,
            end_ms=window.end_ms,
            symbol=asset.symbol,
        )
        started = time.monotonic()

        with structlog.contextvars.bound_contextvars(
            asset_id=asset.asset_id, symbol=asset.symbol
        ):
            logger.info(
                "backfill_starting",
                start_ms=window.start_ms,
                end_ms=window.end_ms,
                timeframes=[tf.value for tf in self._timeframes],
            )
            try:
                prices, volumes = await self._repair_samples(asset, window, result)
                for timeframe in self._timeframes:
                    stats = await self._recompute_timeframe(
                        asset, timeframe, window, prices, volumes
                    )
                    result.add_timeframe(stats)
                result.success = True
            except Exception as e:
                result.error = str(e)
                result.error_type = type(e).__name__
                logger.error(
                    "backfill_failed",
                    error=str(e),
                    error_type=result.error_type,
                    exc_info=True,
                )
            finally:
                result.duration_seconds = round(time.monotonic() - started, 3)

            if result.success:
                logger.info(
                    "backfill_complete",
                    samples_inserted=result.samples_inserted,
                    samples_skipped=result.samples_skipped,
                    candles_created=result.candles_created,
                    candles_recalculated=result.candles_recalculated,
                    candles_skipped=result.candles_skipped,
                    duration_seconds=result.duration_seconds,
                )
        return result

    # ──────────────────────────────────────────────
    # Phase 1: sample repair
    # ──────────────────────────────────────────────

    def _load_span_start(self, window: BackfillWindow) -> int:
        """Earliest sample timestamp any phase-2 period of the window reads."""
        return min(
            period_ends(window.start_ms, window.end_ms, tf)[0] - duration_ms(tf) + 1
            for tf in self._timeframes
        )

    async def _repair_samples(
        self, asset: Asset, window: BackfillWindow, result: BackfillResult
    ) -> tuple[SampleMap, SampleMap | None]:
        """Insert missing samples and return the maps phase 2 aggregates from."""
        venue_id = await self._fetcher.resolve_venue(asset)

        async def _on_page(pages_done: int, pages_estimated: int) -> None:
            logger.debug(
                "backfill_fetch_progress",
                pages=pages_done,
                pages_estimated=pages_estimated,
            )

        bars = await self._fetcher.fetch_history(venue_id, window.start_ms, _on_page)
        bars = [b for b in bars if window.start_ms <= b.timestamp_ms <= window.end_ms]
        result.bars_fetched = len(bars)

        load_from = self._load_span_start(window)
        prices = SampleMap(
            await self._samples.query_samples(
                Measurement.PRICE, asset.asset_id, load_from, window.end_ms
            )
        )
        volumes = None
        if self._collector.include_volume:
            volumes = SampleMap(
                await self._samples.query_samples(
                    Measurement.VOLUME, asset.asset_id, load_from, window.end_ms
                )
            )

        new_prices = []
        new_volumes = []
        for bar in bars:
            if prices.add(bar.timestamp_ms, bar.close):
                new_prices.append((bar.timestamp_ms, bar.close))
            if volumes is not None and volumes.add(bar.timestamp_ms, bar.volume):
                new_volumes.append((bar.timestamp_ms, bar.volume))

        inserted = await self._samples.write_samples(
            Measurement.PRICE, asset.asset_id, new_prices
        )
        if new_volumes:
            await self._samples.write_samples(
                Measurement.VOLUME, asset.asset_id, new_volumes
            )

        result.samples_inserted = inserted
        result.samples_skipped = len(bars) - inserted

        logger.info(
            "backfill_phase1_complete",
            venue_id=venue_id,
            bars_fetched=result.bars_fetched,
            samples_inserted=result.samples_inserted,
            samples_skipped=result.samples_skipped,
            samples_loaded=len(prices),
        )
        return prices, volumes

    # ──────────────────────────────────────────────
    # Phase 2: candle recomputation
    # ──────────────────────────────────────────────

    def _meets_threshold(self, candle: Candle) -> bool:
        threshold = self._settings.quality_threshold
        return candle.quality_factor >= threshold and candle.rsi_quality >= threshold

    async def _recompute_timeframe(
        self,
        asset: Asset,
        timeframe: Timeframe,
        window: BackfillWindow,
        prices: SampleMap,
        volumes: SampleMap | None,
    ) -> TimeframeStats:
        ends = period_ends(window.start_ms, window.end_ms, timeframe)
        span = duration_ms(timeframe)
        lookback = self._collector.rsi_lookback
        stats = TimeframeStats(timeframe=timeframe, periods_checked=len(ends))

        existing = await self._candles.query_candles(
            asset.asset_id, timeframe, ends[0] - lookback * span, ends[-1]
        )
        existing_by_end = {c.period_end_ms: c for c in existing}

        shells = []
        for period_end in ends:
            prior = existing_by_end.get(period_end)
            if prior is not None and self._meets_threshold(prior):
                stats.skipped += 1
                continue

            shell = build_candle(
                asset.asset_id,
                timeframe,
                period_end,
                prices,
                self._collector.sample_interval_ms,
                volumes,
            )
            if shell is None:
                stats.no_data += 1
                continue

            if prior is None:
                stats.created += 1
            else:
                stats.recalculated += 1
            shells.append(shell)

        rebuilt = apply_indicators_in_sequence(existing, shells, lookback)
        await self._candles.write_candles(rebuilt)

        logger.info(
            "backfill_timeframe_complete",
            timeframe=timeframe.value,
            periods_checked=stats.periods_checked,
            created=stats.created,
            recalculated=stats.recalculated,
            skipped=stats.skipped,
            no_data=stats.no_data,
        )
        return stats
