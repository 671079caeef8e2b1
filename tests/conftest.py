"""Shared test fixtures for the OHLCV candle engine."""

from decimal import Decimal

import pytest

from ohlcv.config import (
    AppSettings,
    BackfillSettings,
    CollectorSettings,
    HistorySettings,
    StoreSettings,
)
from ohlcv.models import Candle, Timeframe


def _make_candle(
    period_end_ms: int,
    close: Decimal | str = "100",
    timeframe: Timeframe = Timeframe.M1,
    asset_id: str = "SOL",
    quality_factor: Decimal | str = "1",
    rsi_quality: Decimal | str = "1",
) -> Candle:
    """Flat candle at close with the given qualities."""
    close = Decimal(close)
    return Candle(
        asset_id=asset_id,
        timeframe=timeframe,
        period_end_ms=period_end_ms,
        open=close,
        high=close,
        low=close,
        close=close,
        quality_factor=Decimal(quality_factor),
        rsi_quality=Decimal(rsi_quality),
    )


@pytest.fixture
def make_candle():
    """Factory for flat candles: make_candle(period_end_ms, close, ...)."""
    return _make_candle


@pytest.fixture
def db_path(tmp_path) -> str:
    """Path to a fresh SQLite file per test."""
    return str(tmp_path / "ohlcv.db")


@pytest.fixture
def collector_settings() -> CollectorSettings:
    """Collector settings with a 1-minute timeframe only and 5s sampling."""
    return CollectorSettings(
        sample_interval_ms=5000,
        timeframes=["1m"],
        tick_interval_seconds=60,
        include_volume=False,
        rsi_lookback=31,
    )


@pytest.fixture
def history_settings() -> HistorySettings:
    """History settings with no spacing or backoff so tests never wait."""
    return HistorySettings(
        page_limit=1000,
        request_spacing_seconds=0.0,
        rate_limit_cooldown_seconds=0.0,
        max_retries=3,
        retry_base_delay=0.0,
    )


@pytest.fixture
def backfill_settings() -> BackfillSettings:
    return BackfillSettings(quality_threshold=Decimal("0.90"))


@pytest.fixture
def mock_settings(
    db_path: str,
    collector_settings: CollectorSettings,
    history_settings: HistorySettings,
    backfill_settings: BackfillSettings,
) -> AppSettings:
    """Return AppSettings with test defaults and a temporary database."""
    return AppSettings(
        log_level="DEBUG",
        store=StoreSettings(db_path=db_path),
        candles=collector_settings,
        history=history_settings,
        backfill=backfill_settings,
    )
