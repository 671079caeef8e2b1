"""Live candle builder: one candle per (asset, timeframe, period_end) from the store."""

from ohlcv.candles.aggregator import attach_indicators, build_candle, lookback_start
from ohlcv.candles.sample_map import SampleMap
from ohlcv.config import CollectorSettings
from ohlcv.logging import get_logger
from ohlcv.models import Asset, Candle, Measurement, Timeframe
from ohlcv.store.candle_store import CandleStore
from ohlcv.store.sample_store import SampleStore
from ohlcv.timeframes import duration_ms

logger = get_logger(__name__)


class CandleBuilder:
    """Builds and writes a single candle from freshly queried samples.

    Issues one sample range query (two with volume collection on) and one
    candle range query for the indicator lookback, then overwrites the
    candle at its key.

    Args:
        samples: Raw sample store.
        candles: Candle store.
        settings: Collector settings (sample cadence, volume, lookback).
    """

    def __init__(
        self,
        samples: SampleStore,
        candles: CandleStore,
        settings: CollectorSettings,
    ) -> None:
        self._samples = samples
        self._candles = candles
        self._settings = settings

    async def build(
        self, asset: Asset, timeframe: Timeframe, period_end_ms: int
    ) -> Candle | None:
        """Build, annotate and write the candle ending at period_end_ms.

        Returns the written candle, or None when the bucket had no samples
        (logged and skipped, not an error).
        """
        span = duration_ms(timeframe)
        since_ms = period_end_ms - span + 1

        prices = SampleMap(
            await self._samples.query_samples(
                Measurement.PRICE, asset.asset_id, since_ms, period_end_ms
            )
        )
        volumes = None
        if self._settings.include_volume:
            volumes = SampleMap(
                await self._samples.query_samples(
                    Measurement.VOLUME, asset.asset_id, since_ms, period_end_ms
                )
            )

        candle = build_candle(
            asset.asset_id,
            timeframe,
            period_end_ms,
            prices,
            self._settings.sample_interval_ms,
            volumes,
        )
        if candle is None:
            logger.warning(
                "no_samples_for_period",
                asset_id=asset.asset_id,
                symbol=asset.symbol,
                timeframe=timeframe.value,
                period_end_ms=period_end_ms,
            )
            return None

        lookback = self._settings.rsi_lookback
        previous = await self._candles.query_candles(
            asset.asset_id,
            timeframe,
            lookback_start(candle, lookback),
            period_end_ms - span,
        )
        candle = attach_indicators(candle, previous, lookback)
        await self._candles.write_candle(candle)

        logger.info(
            "candle_built",
            symbol=asset.symbol,
            timeframe=timeframe.value,
            period_end_ms=period_end_ms,
            open=str(candle.open),
            high=str(candle.high),
            low=str(candle.low),
            close=str(candle.close),
            volume=str(candle.volume),
            quality=str(candle.quality_factor),
            rsi=None if candle.rsi is None else str(candle.rsi),
            rsi_quality=str(candle.rsi_quality),
        )
        return candle
