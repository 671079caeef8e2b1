"""Centralized-exchange price feed via ccxt async ``fetch_tickers``."""

from decimal import Decimal

import ccxt.async_support as ccxt_async

from ohlcv.config import FeedSettings
from ohlcv.exceptions import UpstreamError
from ohlcv.feed.source import PriceFeed
from ohlcv.models import Asset


class CcxtPriceFeed(PriceFeed):
    """Last-trade prices from the ``<SYMBOL>/<QUOTE>`` spot markets.

    Args:
        settings: Feed settings (ccxt_exchange, ccxt_quote).
        exchange: Optional pre-built ccxt exchange (tests inject a mock).
    """

    def __init__(self, settings: FeedSettings, exchange=None) -> None:  # type: ignore[no-untyped-def]
        self._settings = settings
        if exchange is None:
            exchange_cls = getattr(ccxt_async, settings.ccxt_exchange)
            exchange = exchange_cls({"enableRateLimit": True})
        self._exchange = exchange

    async def fetch_prices(self, assets: list[Asset]) -> dict[str, Decimal]:
        by_market = {
            f"{asset.symbol.upper()}/{self._settings.ccxt_quote}": asset.asset_id
            for asset in assets
        }
        try:
            tickers = await self._exchange.fetch_tickers(list(by_market))
        except ccxt_async.BaseError as e:
            raise UpstreamError(f"fetch_tickers failed: {e}") from e

        prices: dict[str, Decimal] = {}
        for market, ticker in tickers.items():
            asset_id = by_market.get(market)
            last = ticker.get("last")
            if asset_id is None or last is None:
                continue
            price = Decimal(str(last))
            if price > 0:
                prices[asset_id] = price
        return prices

    async def close(self) -> None:
        await self._exchange.close()
