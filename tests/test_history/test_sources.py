"""Tests for the GeckoTerminal and ccxt history transports.

GeckoTerminal runs against an httpx.MockTransport; ccxt against a mocked
exchange object.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import ccxt.async_support as ccxt_async
import httpx
import pytest

from ohlcv.config import HistorySettings
from ohlcv.exceptions import RateLimitedError, UpstreamError
from ohlcv.history import (
    CcxtHistorySource,
    GeckoTerminalSource,
    create_history_source,
)
from ohlcv.models import Asset

TOKEN = "So11111111111111111111111111111111111111112"
POOL = "8sLbNZoA1cfnvMJLPfp98ZLAnFSYCFApfJKMbiXNLwxj"

TOKEN_RESPONSE = {
    "data": {
        "id": f"solana_{TOKEN}",
        "relationships": {
            "top_pools": {
                "data": [
                    {"id": f"solana_{POOL}", "type": "pool"},
                    {"id": "solana_other", "type": "pool"},
                ]
            }
        },
    }
}

OHLCV_RESPONSE = {
    "data": {
        "attributes": {
            "ohlcv_list": [
                [1704067260, 101.2, 101.9, 100.8, 101.5, 12000.25],
                [1704067200, 100.0, 101.4, 99.9, 101.2, 9800.5],
            ]
        }
    }
}


def _gecko(settings: HistorySettings, handler) -> GeckoTerminalSource:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://gecko.test/api/v2"
    )
    return GeckoTerminalSource(settings, client=client)


class TestGeckoTerminalSource:
    """Pool resolution and minute-bar parsing."""

    @pytest.mark.asyncio
    async def test_resolve_venue_takes_top_pool_without_prefix(
        self, history_settings: HistorySettings
    ) -> None:
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.path)
            return httpx.Response(200, json=TOKEN_RESPONSE)

        source = _gecko(history_settings, handler)
        venue = await source.resolve_venue(Asset(TOKEN, "SOL"))

        assert venue == POOL
        assert requested == [f"/api/v2/networks/solana/tokens/{TOKEN}"]
        await source.close()

    @pytest.mark.asyncio
    async def test_resolve_venue_without_pools_raises(
        self, history_settings: HistorySettings
    ) -> None:
        source = _gecko(
            history_settings,
            lambda request: httpx.Response(
                200, json={"data": {"relationships": {"top_pools": {"data": []}}}}
            ),
        )
        with pytest.raises(UpstreamError, match="No active pool"):
            await source.resolve_venue(Asset(TOKEN, "SOL"))

    @pytest.mark.asyncio
    async def test_fetch_history_parses_bars(self, history_settings: HistorySettings) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=OHLCV_RESPONSE)

        source = _gecko(history_settings, handler)
        bars = await source.fetch_history(POOL, 1_704_067_320_500, limit=1000)

        assert seen["path"] == f"/api/v2/networks/solana/pools/{POOL}/ohlcv/minute"
        assert seen["params"] == {
            "aggregate": "1",
            "before_timestamp": "1704067320",
            "limit": "1000",
        }
        assert [b.timestamp_ms for b in bars] == [1_704_067_260_000, 1_704_067_200_000]
        assert bars[0].close == Decimal("101.5")
        assert bars[1].volume == Decimal("9800.5")

    @pytest.mark.asyncio
    async def test_429_raises_rate_limited(self, history_settings: HistorySettings) -> None:
        source = _gecko(history_settings, lambda request: httpx.Response(429))
        with pytest.raises(RateLimitedError):
            await source.fetch_history(POOL, 1_704_067_320_000)

    @pytest.mark.asyncio
    async def test_server_error_raises_upstream(self, history_settings: HistorySettings) -> None:
        source = _gecko(history_settings, lambda request: httpx.Response(503))
        with pytest.raises(UpstreamError, match="503"):
            await source.fetch_history(POOL, 1_704_067_320_000)

    @pytest.mark.asyncio
    async def test_transport_error_raises_upstream(
        self, history_settings: HistorySettings
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        source = _gecko(history_settings, handler)
        with pytest.raises(UpstreamError, match="connection refused"):
            await source.fetch_history(POOL, 1_704_067_320_000)


@pytest.fixture
def mock_exchange() -> AsyncMock:
    """Mock ccxt exchange with one spot market."""
    exchange = AsyncMock()
    exchange.load_markets = AsyncMock(return_value={"SOL/USDT": {"id": "SOLUSDT"}})
    exchange.fetch_ohlcv = AsyncMock(
        return_value=[
            [1_704_067_200_000, 100.0, 101.0, 99.5, 100.5, 3.25],
            [1_704_067_260_000, 100.5, 102.0, 100.1, 101.7, None],
        ]
    )
    return exchange


class TestCcxtHistorySource:
    """Market mapping, endTime cursor and error mapping."""

    @pytest.mark.asyncio
    async def test_resolve_venue_maps_symbol_to_market(
        self, history_settings: HistorySettings, mock_exchange: AsyncMock
    ) -> None:
        source = CcxtHistorySource(history_settings, exchange=mock_exchange)
        assert await source.resolve_venue(Asset("sol-mint", "sol")) == "SOL/USDT"

    @pytest.mark.asyncio
    async def test_unknown_market_raises(
        self, history_settings: HistorySettings, mock_exchange: AsyncMock
    ) -> None:
        source = CcxtHistorySource(history_settings, exchange=mock_exchange)
        with pytest.raises(UpstreamError, match="No bybit market"):
            await source.resolve_venue(Asset("bonk-mint", "BONK"))

    @pytest.mark.asyncio
    async def test_fetch_history_uses_end_time_cursor(
        self, history_settings: HistorySettings, mock_exchange: AsyncMock
    ) -> None:
        source = CcxtHistorySource(history_settings, exchange=mock_exchange)

        bars = await source.fetch_history("SOL/USDT", 1_704_067_260_000, limit=500)

        mock_exchange.fetch_ohlcv.assert_awaited_once_with(
            "SOL/USDT", timeframe="1m", limit=500, params={"endTime": 1_704_067_259_999}
        )
        assert [b.timestamp_ms for b in bars] == [1_704_067_200_000]
        assert bars[0].close == Decimal("100.5")

    @pytest.mark.asyncio
    async def test_missing_volume_becomes_zero(
        self, history_settings: HistorySettings, mock_exchange: AsyncMock
    ) -> None:
        source = CcxtHistorySource(history_settings, exchange=mock_exchange)
        bars = await source.fetch_history("SOL/USDT", 1_704_067_320_000)
        assert bars[1].volume == Decimal("0")

    @pytest.mark.asyncio
    async def test_error_mapping(
        self, history_settings: HistorySettings, mock_exchange: AsyncMock
    ) -> None:
        source = CcxtHistorySource(history_settings, exchange=mock_exchange)

        mock_exchange.fetch_ohlcv.side_effect = ccxt_async.RateLimitExceeded("slow down")
        with pytest.raises(RateLimitedError):
            await source.fetch_history("SOL/USDT", 1_704_067_320_000)

        mock_exchange.fetch_ohlcv.side_effect = ccxt_async.NetworkError("reset")
        with pytest.raises(UpstreamError, match="reset"):
            await source.fetch_history("SOL/USDT", 1_704_067_320_000)

    @pytest.mark.asyncio
    async def test_close_closes_exchange(
        self, history_settings: HistorySettings, mock_exchange: AsyncMock
    ) -> None:
        source = CcxtHistorySource(history_settings, exchange=mock_exchange)
        await source.close()
        mock_exchange.close.assert_awaited_once()


class TestCreateHistorySource:
    @pytest.mark.asyncio
    async def test_default_is_geckoterminal(self, history_settings: HistorySettings) -> None:
        source = create_history_source(history_settings)
        assert isinstance(source, GeckoTerminalSource)
        await source.close()

    @pytest.mark.asyncio
    async def test_ccxt_selected(self, history_settings: HistorySettings) -> None:
        settings = history_settings.model_copy(update={"source": "ccxt"})
        source = create_history_source(settings)
        assert isinstance(source, CcxtHistorySource)
        await source.close()
