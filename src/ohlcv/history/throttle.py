"""Request spacing and rate-limit cool-down for upstream calls."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ohlcv.exceptions import RateLimitedError
from ohlcv.logging import get_logger

logger = get_logger(__name__)


class RequestThrottle:
    """Enforce a minimum spacing between requests and ride out rate limits.

    Every call waits until ``min_interval`` seconds have passed since the
    previous request started. A call that raises RateLimitedError sleeps
    ``cooldown`` seconds and is retried with the same arguments, without
    limit; this path does not consume the fetcher's retry budget.

    Args:
        min_interval: Minimum seconds between request starts (2.0 = 30/min).
        cooldown: Seconds to sleep after an explicit rate-limit response.
    """

    def __init__(self, min_interval: float = 2.0, cooldown: float = 60.0) -> None:
        self._min_interval = min_interval
        self._cooldown = cooldown
        self._last_request: float | None = None
        self._lock = asyncio.Lock()

    async def _wait_turn(self) -> None:
        async with self._lock:
            if self._last_request is not None:
                elapsed = time.monotonic() - self._last_request
                if elapsed < self._min_interval:
                    await asyncio.sleep(self._min_interval - elapsed)
            self._last_request = time.monotonic()

    async def call(
        self, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
    ) -> Any:
        """Run fn(*args, **kwargs) respecting spacing and rate-limit cool-down."""
        while True:
            await self._wait_turn()
            try:
                return await fn(*args, **kwargs)
            except RateLimitedError as e:
                logger.warning(
                    "rate_limit_cooldown",
                    cooldown_seconds=self._cooldown,
                    error=str(e),
                )
                await asyncio.sleep(self._cooldown)
