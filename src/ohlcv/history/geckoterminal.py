"""GeckoTerminal history transport via httpx async.

Resolves a token's most liquid pool and reads minute OHLCV bars for it.

CRITICAL implementation notes:
- Timestamps are Unix SECONDS on the wire; converted to ms at this boundary
- ohlcv_list is REVERSE-SORTED (newest first)
- Max 1000 bars per call, 30 requests/minute on the public API
- HTTP 429 is the explicit rate-limit signal
"""

from decimal import Decimal

import httpx

from ohlcv.config import HistorySettings
from ohlcv.exceptions import RateLimitedError, UpstreamError
from ohlcv.history.source import HistorySource
from ohlcv.logging import get_logger
from ohlcv.models import Asset, HistoryBar

logger = get_logger(__name__)


class GeckoTerminalSource(HistorySource):
    """Concrete GeckoTerminal transport.

    asset_id is the token contract address on ``settings.network``.

    Args:
        settings: History settings (base_url, network, request_timeout).
        client: Optional pre-built httpx client (tests inject a MockTransport).
    """

    def __init__(
        self,
        settings: HistorySettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._settings.base_url,
                timeout=self._settings.request_timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def _get_json(self, path: str, params: dict | None = None) -> dict:
        try:
            response = await self._get_client().get(path, params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(f"GeckoTerminal request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError("GeckoTerminal rate limit (429)")
        if response.is_error:
            raise UpstreamError(
                f"GeckoTerminal API error: {response.status_code} {response.reason_phrase}"
            )
        return response.json()

    async def resolve_venue(self, asset: Asset) -> str:
        """Return the top pool address for the asset's token."""
        network = self._settings.network
        data = await self._get_json(f"/networks/{network}/tokens/{asset.asset_id}")

        pools = (
            data.get("data", {})
            .get("relationships", {})
            .get("top_pools", {})
            .get("data")
        )
        if not pools:
            raise UpstreamError(f"No active pool found for token {asset.asset_id}")

        # Pool ids are prefixed with the network: "solana_<address>"
        pool_id = pools[0]["id"].removeprefix(f"{network}_")
        logger.debug("main_pool_resolved", asset_id=asset.asset_id, pool_id=pool_id)
        return pool_id

    async def fetch_history(
        self, venue_id: str, before_ms: int, limit: int = 1000
    ) -> list[HistoryBar]:
        """Fetch one page of minute bars older than before_ms."""
        data = await self._get_json(
            f"/networks/{self._settings.network}/pools/{venue_id}/ohlcv/minute",
            params={
                "aggregate": 1,
                "before_timestamp": before_ms // 1000,
                "limit": limit,
            },
        )
        rows = data.get("data", {}).get("attributes", {}).get("ohlcv_list", [])
        return [
            HistoryBar(
                timestamp_ms=int(row[0]) * 1000,
                open=Decimal(str(row[1])),
                high=Decimal(str(row[2])),
                low=Decimal(str(row[3])),
                close=Decimal(str(row[4])),
                volume=Decimal(str(row[5])),
            )
            for row in rows
        ]

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
