"""Live price feed -- pluggable spot price clients and the sampling loop."""

from ohlcv.config import FeedSettings
from ohlcv.feed.ccxt_feed import CcxtPriceFeed
from ohlcv.feed.collector import PriceCollector
from ohlcv.feed.jupiter import JupiterPriceFeed
from ohlcv.feed.source import PriceFeed


def create_price_feed(settings: FeedSettings) -> PriceFeed:
    """Build the feed selected by FEED_SOURCE."""
    if settings.source == "ccxt":
        return CcxtPriceFeed(settings)
    return JupiterPriceFeed(settings)


__all__ = [
    "CcxtPriceFeed",
    "JupiterPriceFeed",
    "PriceCollector",
    "PriceFeed",
    "create_price_feed",
]
