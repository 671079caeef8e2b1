"""Live price collector -- polls the price feed and appends raw samples.

Every cycle reads the active assets, asks the feed for one price snapshot and
writes one sample per asset, all stamped with the same cycle timestamp. The
cycle repeats every ``sample_interval_ms``, which is also the cadence the
candle quality score expects.
"""

import asyncio
import time

from ohlcv.config import CollectorSettings
from ohlcv.feed.source import PriceFeed
from ohlcv.logging import get_logger
from ohlcv.models import PriceSample
from ohlcv.store.asset_registry import AssetRegistry
from ohlcv.store.sample_store import SampleStore

logger = get_logger(__name__)


class PriceCollector:
    """Polls a PriceFeed in the background and stores price samples.

    Args:
        feed: Live price feed.
        registry: Source of the active asset list, re-read every cycle.
        samples: Raw sample store.
        settings: Collector settings (sample_interval_ms).
    """

    def __init__(
        self,
        feed: PriceFeed,
        registry: AssetRegistry,
        samples: SampleStore,
        settings: CollectorSettings,
    ) -> None:
        self._feed = feed
        self._registry = registry
        self._samples = samples
        self._interval = settings.sample_interval_ms / 1000
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Begin collecting prices in the background."""
        if self._running:
            logger.warning("price_collector_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._collect_loop())
        logger.info("price_collector_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop the collector and wait for the loop to exit."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("price_collector_stopped")

    async def _collect_loop(self) -> None:
        while self._running:
            started = time.monotonic()
            try:
                await self.collect_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("price_collection_error", exc_info=True)
            if self._running:
                elapsed = time.monotonic() - started
                await asyncio.sleep(max(0.0, self._interval - elapsed))

    async def collect_once(self, now_ms: int | None = None) -> int:
        """Take one price snapshot. Returns the number of samples written."""
        assets = await self._registry.list_active_assets()
        if not assets:
            logger.warning("price_collection_without_assets")
            return 0

        prices = await self._feed.fetch_prices(assets)
        timestamp_ms = now_ms if now_ms is not None else int(time.time() * 1000)

        written = 0
        for asset in assets:
            price = prices.get(asset.asset_id)
            if price is None:
                logger.warning(
                    "price_missing", asset_id=asset.asset_id, symbol=asset.symbol
                )
                continue
            sample = PriceSample(asset.asset_id, timestamp_ms, price)
            if await self._samples.write_price_sample(sample):
                written += 1

        logger.debug(
            "price_samples_collected",
            timestamp_ms=timestamp_ms,
            assets=len(assets),
            written=written,
        )
        return written
