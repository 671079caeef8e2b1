"""Abstract live price feed interface.

The collector depends only on this interface; the concrete feeds own their
transport and wire format.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from ohlcv.models import Asset


class PriceFeed(ABC):
    """Spot price snapshot for a batch of assets.

    Implementations raise UpstreamError when the request fails. Assets the
    upstream has no price for are left out of the result, not raised.
    """

    @abstractmethod
    async def fetch_prices(self, assets: list[Asset]) -> dict[str, Decimal]:
        """Return the current price per asset_id."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...
