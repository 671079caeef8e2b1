"""Entry point for the OHLCV candle engine.

Wires all components together, starts the live price collector and runs the
minute scheduler until SIGINT or SIGTERM. With BACKFILL_STARTUP_HOURS set,
every active asset is backfilled over that many hours before the first tick.

Component wiring order (in _build_components):
1. Database (SQLite connection, schema)
2. AssetRegistry, SampleStore, CandleStore
3. HistorySource (GeckoTerminal or ccxt) and HistoryFetcher
4. PriceFeed (Jupiter or ccxt) and PriceCollector
5. CandleBuilder and CandleScheduler
6. BackfillOrchestrator
"""

import asyncio
import signal
import time
from typing import Any

from ohlcv.backfill.orchestrator import BackfillOrchestrator
from ohlcv.candles.builder import CandleBuilder
from ohlcv.candles.scheduler import CandleScheduler
from ohlcv.config import AppSettings
from ohlcv.feed import PriceCollector, create_price_feed
from ohlcv.history import HistoryFetcher, create_history_source
from ohlcv.logging import get_logger, setup_logging
from ohlcv.store import AssetRegistry, CandleStore, Database, SampleStore


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build the engine's dependency graph from settings.

    Note: Does NOT connect the database -- that happens in run().
    """
    database = Database(settings.store.db_path)
    registry = AssetRegistry(database)
    samples = SampleStore(database)
    candles = CandleStore(database, batch_size=settings.store.write_batch_size)

    source = create_history_source(settings.history)
    fetcher = HistoryFetcher(source, registry, settings.history)

    feed = create_price_feed(settings.feed)
    collector = PriceCollector(feed, registry, samples, settings.candles)

    builder = CandleBuilder(samples, candles, settings.candles)
    scheduler = CandleScheduler(builder, registry, settings.candles)

    backfill = BackfillOrchestrator(
        registry,
        samples,
        candles,
        fetcher,
        settings.candles,
        settings.backfill,
    )

    return {
        "database": database,
        "registry": registry,
        "samples": samples,
        "candles": candles,
        "source": source,
        "fetcher": fetcher,
        "feed": feed,
        "collector": collector,
        "builder": builder,
        "scheduler": scheduler,
        "backfill": backfill,
    }


def _setup_signal_handlers(scheduler: CandleScheduler) -> None:
    """Register SIGINT/SIGTERM to stop the scheduler gracefully.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("ohlcv.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(scheduler.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


async def run() -> None:
    """Run the candle engine until a shutdown signal arrives."""
    settings = AppSettings()

    setup_logging(settings.log_level)
    logger = get_logger("ohlcv.main")

    components = _build_components(settings)
    scheduler: CandleScheduler = components["scheduler"]
    collector: PriceCollector = components["collector"]
    _setup_signal_handlers(scheduler)

    logger.info(
        "ohlcv_engine_starting",
        db_path=settings.store.db_path,
        history_source=settings.history.source,
        price_feed=settings.feed.source if settings.feed.enabled else None,
        timeframes=settings.candles.timeframes,
        quality_threshold=str(settings.backfill.quality_threshold),
    )

    try:
        await components["database"].connect()
        if settings.feed.enabled:
            await collector.start()

        startup_hours = settings.backfill.startup_hours
        if startup_hours > 0:
            end_ms = int(time.time() * 1000)
            summary = await components["backfill"].run_backfill_all(
                end_ms - startup_hours * 3_600_000, end_ms
            )
            logger.info(
                "startup_backfill_done",
                hours=startup_hours,
                successful=summary.successful,
                failed=summary.failed,
            )

        await scheduler.start()
    finally:
        await collector.stop()
        await components["feed"].close()
        await components["source"].close()
        await components["database"].close()
        logger.info("ohlcv_engine_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
