"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """SQLite time-series store settings."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    db_path: str = "data/ohlcv.db"
    write_batch_size: int = 500  # candles per executemany during bulk writes


class CollectorSettings(BaseSettings):
    """Live candle aggregation parameters.

    Controls the nominal raw sample cadence (used for quality scoring), the
    timeframes built on each tick, and the RSI quality lookback.
    All fields configurable via CANDLES_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="CANDLES_")

    sample_interval_ms: int = 5000  # nominal raw price cadence
    timeframes: list[str] = ["1m", "5m", "15m", "1h", "4h", "1d"]
    tick_interval_seconds: int = 60
    include_volume: bool = False
    rsi_lookback: int = 31  # 30 previous candles + current one


class HistorySettings(BaseSettings):
    """Upstream minute-bar history source configuration.

    All fields configurable via HISTORY_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="HISTORY_")

    source: Literal["geckoterminal", "ccxt"] = "geckoterminal"
    base_url: str = "https://api.geckoterminal.com/api/v2"
    network: str = "solana"
    ccxt_exchange: str = "bybit"
    ccxt_quote: str = "USDT"
    page_limit: int = 1000
    request_spacing_seconds: float = 2.0  # 30 requests/minute ceiling
    rate_limit_cooldown_seconds: float = 60.0
    max_retries: int = 3
    retry_base_delay: float = 5.0  # 5s, 10s, 20s
    request_timeout: float = 30.0


class FeedSettings(BaseSettings):
    """Live spot price feed polled every CANDLES_SAMPLE_INTERVAL_MS.

    All fields configurable via FEED_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="FEED_")

    enabled: bool = True
    source: Literal["jupiter", "ccxt"] = "jupiter"
    jupiter_url: str = "https://lite-api.jup.ag"
    ccxt_exchange: str = "bybit"
    ccxt_quote: str = "USDT"
    request_timeout: float = 10.0


class BackfillSettings(BaseSettings):
    """Backfill repair thresholds."""

    model_config = SettingsConfigDict(env_prefix="BACKFILL_")

    quality_threshold: Decimal = Decimal("0.90")
    startup_hours: int = 0  # >0 backfills all assets over this many hours on start


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    store: StoreSettings = StoreSettings()
    candles: CollectorSettings = CollectorSettings()
    history: HistorySettings = HistorySettings()
    feed: FeedSettings = FeedSettings()
    backfill: BackfillSettings = BackfillSettings()
