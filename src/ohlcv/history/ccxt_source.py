"""Centralized-exchange history transport via ccxt async.

Maps an asset symbol to the exchange's ``<SYMBOL>/<QUOTE>`` spot market and
reads 1m OHLCV with an ``endTime`` cursor.
"""

from decimal import Decimal

import ccxt.async_support as ccxt_async

from ohlcv.config import HistorySettings
from ohlcv.exceptions import RateLimitedError, UpstreamError
from ohlcv.history.source import HistorySource
from ohlcv.logging import get_logger
from ohlcv.models import Asset, HistoryBar

logger = get_logger(__name__)


class CcxtHistorySource(HistorySource):
    """Concrete ccxt transport for any exchange ccxt supports.

    Args:
        settings: History settings (ccxt_exchange, ccxt_quote).
        exchange: Optional pre-built ccxt exchange (tests inject a mock).
    """

    def __init__(self, settings: HistorySettings, exchange=None) -> None:  # type: ignore[no-untyped-def]
        self._settings = settings
        if exchange is None:
            exchange_cls = getattr(ccxt_async, settings.ccxt_exchange)
            exchange = exchange_cls({"enableRateLimit": True})
        self._exchange = exchange
        self._markets: dict = {}

    async def resolve_venue(self, asset: Asset) -> str:
        """Return the unified market symbol for the asset, e.g. "SOL/USDT"."""
        try:
            if not self._markets:
                self._markets = await self._exchange.load_markets()
        except ccxt_async.RateLimitExceeded as e:
            raise RateLimitedError(str(e)) from e
        except ccxt_async.BaseError as e:
            raise UpstreamError(f"load_markets failed: {e}") from e

        symbol = f"{asset.symbol.upper()}/{self._settings.ccxt_quote}"
        if symbol not in self._markets:
            raise UpstreamError(
                f"No {self._settings.ccxt_exchange} market for {asset.symbol}"
            )
        return symbol

    async def fetch_history(
        self, venue_id: str, before_ms: int, limit: int = 1000
    ) -> list[HistoryBar]:
        """Fetch one page of 1m candles ending before before_ms."""
        try:
            rows = await self._exchange.fetch_ohlcv(
                venue_id,
                timeframe="1m",
                limit=limit,
                params={"endTime": before_ms - 1},
            )
        except ccxt_async.RateLimitExceeded as e:
            raise RateLimitedError(str(e)) from e
        except ccxt_async.BaseError as e:
            raise UpstreamError(f"fetch_ohlcv failed for {venue_id}: {e}") from e

        return [
            HistoryBar(
                timestamp_ms=int(row[0]),
                open=Decimal(str(row[1])),
                high=Decimal(str(row[2])),
                low=Decimal(str(row[3])),
                close=Decimal(str(row[4])),
                volume=Decimal(str(row[5] or 0)),
            )
            for row in rows
            if row[0] < before_ms
        ]

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        await self._exchange.close()
