"""Paginated minute-bar history fetch with throttling, retry and progress reporting.

Walks backward from "now" with a ``before`` cursor, 1000 bars per page, until
the requested start is reached or the upstream returns an empty page. Every
upstream call (venue resolution, each page) runs through the RequestThrottle
inside a bounded exponential-backoff retry.

CRITICAL implementation notes:
- Pages arrive newest-first; the result is returned oldest-first
- Consecutive pages can overlap on the cursor bar; bars are de-duplicated
- A page whose oldest bar does not move the cursor ends the walk
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ohlcv.config import HistorySettings
from ohlcv.exceptions import UpstreamError
from ohlcv.history.source import HistorySource
from ohlcv.history.throttle import RequestThrottle
from ohlcv.logging import get_logger
from ohlcv.models import Asset, HistoryBar
from ohlcv.store.asset_registry import AssetRegistry
from ohlcv.timeframes import MINUTE_MS

logger = get_logger(__name__)

#: Called after every page with (pages_fetched, pages_estimated).
ProgressCallback = Callable[[int, int], Awaitable[None]]


class HistoryFetcher:
    """Fetches minute-bar history for an asset's primary venue.

    Usage:
        fetcher = HistoryFetcher(source, registry, settings)
        venue_id = await fetcher.resolve_venue(asset)
        bars = await fetcher.fetch_history(venue_id, since_ms)
    """

    def __init__(
        self,
        source: HistorySource,
        registry: AssetRegistry,
        settings: HistorySettings,
        throttle: RequestThrottle | None = None,
    ) -> None:
        self._source = source
        self._registry = registry
        self._settings = settings
        self._throttle = throttle or RequestThrottle(
            min_interval=settings.request_spacing_seconds,
            cooldown=settings.rate_limit_cooldown_seconds,
        )

    # ──────────────────────────────────────────────
    # Public methods
    # ──────────────────────────────────────────────

    async def resolve_venue(self, asset: Asset) -> str:
        """Return the asset's venue id, resolving and caching it if needed."""
        if asset.venue_id:
            return asset.venue_id

        logger.info("resolving_venue", asset_id=asset.asset_id, symbol=asset.symbol)
        venue_id = await self._call_with_retry(
            self._source.resolve_venue,
            asset,
            context=f"resolve_venue {asset.symbol}",
        )
        await self._registry.set_venue_id(asset.asset_id, venue_id)
        asset.venue_id = venue_id
        logger.info("venue_resolved", asset_id=asset.asset_id, venue_id=venue_id)
        return venue_id

    async def fetch_history(
        self,
        venue_id: str,
        since_ms: int,
        progress_callback: ProgressCallback | None = None,
    ) -> list[HistoryBar]:
        """Walk BACKWARD from now to since_ms collecting minute bars.

        Returns bars ordered oldest to newest. Bars older than since_ms from
        the last page are kept; callers filter to their exact window.

        Raises:
            UpstreamError: If a page fails after the retry budget.
        """
        now_ms = int(time.time() * 1000)
        limit = self._settings.page_limit
        pages_estimated = max(1, math.ceil((now_ms - since_ms) / MINUTE_MS / limit))

        bars_by_ts: dict[int, HistoryBar] = {}
        pages = 0
        before = now_ms

        while before > since_ms:
            page = await self._call_with_retry(
                self._source.fetch_history,
                venue_id,
                before,
                limit,
                context=f"fetch_history {venue_id}",
            )

            if not page:
                logger.info(
                    "history_exhausted",
                    venue_id=venue_id,
                    bars_fetched=len(bars_by_ts),
                )
                break

            pages += 1
            for bar in page:
                bars_by_ts[bar.timestamp_ms] = bar

            if progress_callback is not None:
                await progress_callback(pages, pages_estimated)

            oldest_ts = min(bar.timestamp_ms for bar in page)
            if oldest_ts >= before:
                break  # No progress guard -- avoid infinite loop
            before = oldest_ts

        bars = sorted(bars_by_ts.values(), key=lambda b: b.timestamp_ms)

        logger.info(
            "history_fetched",
            venue_id=venue_id,
            pages=pages,
            bars=len(bars),
            first_ms=bars[0].timestamp_ms if bars else None,
            last_ms=bars[-1].timestamp_ms if bars else None,
        )
        return bars

    # ──────────────────────────────────────────────
    # Retry wrapper
    # ──────────────────────────────────────────────

    async def _call_with_retry(
        self, fn: Callable[..., Awaitable[Any]], *args: Any, context: str = ""
    ) -> Any:
        """Execute an upstream call with exponential backoff retry.

        Retries up to max_retries attempts with delays 5s, 10s, ... between
        them. Rate-limit responses are absorbed by the throttle and never
        count as an attempt. Raises UpstreamError on final failure.
        """
        max_retries = self._settings.max_retries
        base_delay = self._settings.retry_base_delay

        for attempt in range(max_retries):
            try:
                return await self._throttle.call(fn, *args)
            except Exception as e:
                if attempt == max_retries - 1:
                    logger.error(
                        "fetch_failed_permanently",
                        context=context,
                        error=str(e),
                        attempts=max_retries,
                    )
                    raise UpstreamError(
                        f"{context} failed after {max_retries} attempts: {e}"
                    ) from e

                delay = base_delay * (2**attempt)
                logger.warning(
                    "fetch_retry",
                    context=context,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        raise UpstreamError(f"{context}: no attempts configured")
