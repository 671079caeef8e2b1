"""Tests for the Jupiter and ccxt live price feeds."""

from decimal import Decimal
from unittest.mock import AsyncMock

import ccxt.async_support as ccxt_async
import httpx
import pytest

from ohlcv.config import FeedSettings
from ohlcv.exceptions import UpstreamError
from ohlcv.feed import CcxtPriceFeed, JupiterPriceFeed, create_price_feed
from ohlcv.models import Asset

SOL_MINT = "So11111111111111111111111111111111111111112"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def _jupiter(handler) -> JupiterPriceFeed:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://jup.test"
    )
    return JupiterPriceFeed(FeedSettings(), client=client)


class TestJupiterPriceFeed:
    @pytest.mark.asyncio
    async def test_parses_usd_prices_and_skips_missing(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["ids"] = request.url.params["ids"]
            return httpx.Response(
                200,
                json={
                    SOL_MINT: {"usdPrice": 142.37, "decimals": 9},
                    BONK_MINT: None,
                },
            )

        feed = _jupiter(handler)
        prices = await feed.fetch_prices([Asset(SOL_MINT, "SOL"), Asset(BONK_MINT, "BONK")])

        assert seen["path"] == "/price/v3"
        assert seen["ids"] == f"{SOL_MINT},{BONK_MINT}"
        assert prices == {SOL_MINT: Decimal("142.37")}
        await feed.close()

    @pytest.mark.asyncio
    async def test_large_asset_list_is_split(self) -> None:
        batches: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            ids = request.url.params["ids"].split(",")
            batches.append(len(ids))
            return httpx.Response(200, json={i: {"usdPrice": "1.5"} for i in ids})

        feed = _jupiter(handler)
        assets = [Asset(f"mint{i}", f"T{i}") for i in range(120)]
        prices = await feed.fetch_prices(assets)

        assert batches == [50, 50, 20]
        assert len(prices) == 120

    @pytest.mark.asyncio
    async def test_http_error_raises_upstream(self) -> None:
        feed = _jupiter(lambda request: httpx.Response(500))
        with pytest.raises(UpstreamError, match="500"):
            await feed.fetch_prices([Asset(SOL_MINT, "SOL")])


class TestCcxtPriceFeed:
    @pytest.mark.asyncio
    async def test_maps_markets_back_to_asset_ids(self) -> None:
        exchange = AsyncMock()
        exchange.fetch_tickers = AsyncMock(
            return_value={
                "SOL/USDT": {"symbol": "SOL/USDT", "last": 142.5},
                "BONK/USDT": {"symbol": "BONK/USDT", "last": None},
            }
        )
        feed = CcxtPriceFeed(FeedSettings(), exchange=exchange)

        prices = await feed.fetch_prices([Asset("sol-mint", "sol"), Asset("bonk-mint", "BONK")])

        exchange.fetch_tickers.assert_awaited_once_with(["SOL/USDT", "BONK/USDT"])
        assert prices == {"sol-mint": Decimal("142.5")}

    @pytest.mark.asyncio
    async def test_exchange_error_raises_upstream(self) -> None:
        exchange = AsyncMock()
        exchange.fetch_tickers = AsyncMock(side_effect=ccxt_async.NetworkError("reset"))
        feed = CcxtPriceFeed(FeedSettings(), exchange=exchange)

        with pytest.raises(UpstreamError, match="reset"):
            await feed.fetch_prices([Asset("sol-mint", "SOL")])


def test_create_price_feed_selects_source() -> None:
    assert isinstance(create_price_feed(FeedSettings()), JupiterPriceFeed)
