"""Upstream history layer -- minute-bar transports and the paginated fetcher."""

from ohlcv.config import HistorySettings
from ohlcv.history.ccxt_source import CcxtHistorySource
from ohlcv.history.fetcher import HistoryFetcher
from ohlcv.history.geckoterminal import GeckoTerminalSource
from ohlcv.history.source import HistorySource
from ohlcv.history.throttle import RequestThrottle


def create_history_source(settings: HistorySettings) -> HistorySource:
    """Build the transport selected by HISTORY_SOURCE."""
    if settings.source == "ccxt":
        return CcxtHistorySource(settings)
    return GeckoTerminalSource(settings)


__all__ = [
    "CcxtHistorySource",
    "GeckoTerminalSource",
    "HistoryFetcher",
    "HistorySource",
    "RequestThrottle",
    "create_history_source",
]
