"""Minute-aligned scheduler driving live candle aggregation.

Every tick iterates timeframes, then active assets, and builds the candle
ending at the tick for each timeframe whose grid the tick falls on. Ticks are
serialized: a pass completes before the next one starts. A failing asset is
logged and skipped so it can never stall the loop.
"""

import asyncio
import time

from ohlcv.candles.builder import CandleBuilder
from ohlcv.config import CollectorSettings
from ohlcv.logging import get_logger
from ohlcv.models import Timeframe
from ohlcv.store.asset_registry import AssetRegistry
from ohlcv.timeframes import align_to_grid, is_period_boundary, parse_timeframe

logger = get_logger(__name__)


class CandleScheduler:
    """Runs CandleBuilder on every minute boundary.

    Args:
        builder: Live candle builder.
        registry: Source of the active asset list, re-read every tick.
        settings: Collector settings (timeframes, tick interval).
    """

    def __init__(
        self,
        builder: CandleBuilder,
        registry: AssetRegistry,
        settings: CollectorSettings,
    ) -> None:
        self._builder = builder
        self._registry = registry
        self._settings = settings
        self._timeframes = [parse_timeframe(tf) for tf in settings.timeframes]
        self._running = False
        self._stop_requested = False
        self._tick_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the tick loop until stop() is called.

        Returns immediately when stop() was already called, so a shutdown
        signal received before the loop starts is not lost.
        """
        if self._stop_requested:
            logger.info("candle_scheduler_start_skipped_stop_requested")
            return
        logger.info(
            "candle_scheduler_starting",
            timeframes=[tf.value for tf in self._timeframes],
            tick_interval=self._settings.tick_interval_seconds,
        )
        self._running = True
        try:
            await self._run_loop()
        finally:
            self._running = False
        logger.info("candle_scheduler_stopped")

    async def stop(self) -> None:
        """Signal the loop to exit after the current tick."""
        logger.info("candle_scheduler_stopping")
        self._stop_requested = True
        self._running = False

    async def _run_loop(self) -> None:
        interval_ms = self._settings.tick_interval_seconds * 1000
        tick_ms: int | None = None
        while self._running:
            try:
                await self.on_tick(tick_ms)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("candle_tick_error", error=str(e), exc_info=True)

            # Target boundary is fixed before sleeping; an early wake-up
            # still builds the candle ending on it.
            now_ms = int(time.time() * 1000)
            tick_ms = (now_ms // interval_ms + 1) * interval_ms
            await asyncio.sleep(max(0, tick_ms - now_ms) / 1000)

    async def on_tick(self, now_ms: int | None = None) -> int:
        """Run one aggregation pass for the minute containing now_ms.

        Returns the number of candles written.
        """
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        tick_ms = align_to_grid(now_ms, Timeframe.M1)

        async with self._tick_lock:
            assets = await self._registry.list_active_assets()
            if not assets:
                logger.warning("candle_tick_without_assets", tick_ms=tick_ms)
                return 0

            built = 0
            for timeframe in self._timeframes:
                if not is_period_boundary(tick_ms, timeframe):
                    continue

                logger.debug(
                    "building_timeframe",
                    timeframe=timeframe.value,
                    tick_ms=tick_ms,
                    assets=len(assets),
                )
                for asset in assets:
                    try:
                        candle = await self._builder.build(asset, timeframe, tick_ms)
                    except Exception as e:
                        logger.error(
                            "candle_build_failed",
                            asset_id=asset.asset_id,
                            symbol=asset.symbol,
                            timeframe=timeframe.value,
                            error=str(e),
                            exc_info=True,
                        )
                        continue
                    if candle is not None:
                        built += 1

            return built
