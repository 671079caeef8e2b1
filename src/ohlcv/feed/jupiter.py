"""Jupiter price API feed via httpx async.

asset_id is the token mint address. One GET to ``/price/v3?ids=...`` returns
``{mint: {"usdPrice": ...}}`` for up to 50 mints; larger asset lists are
split into several requests.
"""

from decimal import Decimal, InvalidOperation

import httpx

from ohlcv.config import FeedSettings
from ohlcv.exceptions import UpstreamError
from ohlcv.feed.source import PriceFeed
from ohlcv.logging import get_logger
from ohlcv.models import Asset

logger = get_logger(__name__)

#: Max ids per Jupiter price request.
_MAX_IDS_PER_REQUEST = 50


class JupiterPriceFeed(PriceFeed):
    """Concrete Jupiter feed.

    Args:
        settings: Feed settings (jupiter_url, request_timeout).
        client: Optional pre-built httpx client (tests inject a MockTransport).
    """

    def __init__(
        self,
        settings: FeedSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._settings.jupiter_url,
                timeout=self._settings.request_timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def _fetch_batch(self, mints: list[str]) -> dict:
        try:
            response = await self._get_client().get(
                "/price/v3", params={"ids": ",".join(mints)}
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Jupiter request failed: {e}") from e

        if response.is_error:
            raise UpstreamError(
                f"Jupiter API error: {response.status_code} {response.reason_phrase}"
            )
        return response.json()

    async def fetch_prices(self, assets: list[Asset]) -> dict[str, Decimal]:
        mints = [asset.asset_id for asset in assets]
        prices: dict[str, Decimal] = {}

        for i in range(0, len(mints), _MAX_IDS_PER_REQUEST):
            data = await self._fetch_batch(mints[i : i + _MAX_IDS_PER_REQUEST])
            for mint, entry in data.items():
                raw = (entry or {}).get("usdPrice")
                if raw is None:
                    continue
                try:
                    price = Decimal(str(raw))
                except InvalidOperation:
                    logger.warning("invalid_price", asset_id=mint, raw=raw)
                    continue
                if price > 0:
                    prices[mint] = price

        return prices

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
