"""Abstract history source interface.

Defines the contract for all upstream minute-bar transports. The fetcher
depends only on this interface, keeping provider-specific details isolated
in the concrete implementations.
"""

from abc import ABC, abstractmethod

from ohlcv.models import Asset, HistoryBar


class HistorySource(ABC):
    """Abstract base class for upstream minute-bar history transports.

    Implementations perform exactly one upstream request per call. They raise
    RateLimitedError on an explicit rate-limit response and UpstreamError on
    any other failure; spacing, cool-down and retries are the fetcher's job.
    """

    @abstractmethod
    async def resolve_venue(self, asset: Asset) -> str:
        """Return the id of the asset's primary pool/market."""
        ...

    @abstractmethod
    async def fetch_history(
        self, venue_id: str, before_ms: int, limit: int = 1000
    ) -> list[HistoryBar]:
        """Fetch up to ``limit`` minute bars strictly older than ``before_ms``.

        Bars may be returned in any order. An empty list means the
        upstream history is exhausted.

        Pagination is NOT handled here -- callers are responsible for
        walking the ``before_ms`` cursor backward.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...
