"""Candle store keyed by (asset_id, timeframe, period_end_ms).

Writes use INSERT OR REPLACE: rebuilding a candle overwrites the previous
version in place and never accumulates duplicates.

CRITICAL: Decimal fields stored as TEXT in SQLite, restored as Decimal on read.
"""

from collections.abc import Sequence
from decimal import Decimal

import aiosqlite

from ohlcv.exceptions import PersistenceError
from ohlcv.logging import get_logger
from ohlcv.models import Candle, Timeframe
from ohlcv.store.database import Database

logger = get_logger(__name__)

_COLUMNS = (
    "asset_id, timeframe, period_end_ms, open, high, low, close, volume, "
    "quality_factor, rsi, rsi_quality, ema"
)


def _to_row(candle: Candle) -> tuple:
    return (
        *candle.key,
        str(candle.open),
        str(candle.high),
        str(candle.low),
        str(candle.close),
        str(candle.volume),
        str(candle.quality_factor),
        None if candle.rsi is None else str(candle.rsi),
        str(candle.rsi_quality),
        None if candle.ema is None else str(candle.ema),
    )


def _from_row(row: Sequence) -> Candle:
    return Candle(
        asset_id=row[0],
        timeframe=Timeframe(row[1]),
        period_end_ms=row[2],
        open=Decimal(row[3]),
        high=Decimal(row[4]),
        low=Decimal(row[5]),
        close=Decimal(row[6]),
        volume=Decimal(row[7]),
        quality_factor=Decimal(row[8]),
        rsi=None if row[9] is None else Decimal(row[9]),
        rsi_quality=Decimal(row[10]),
        ema=None if row[11] is None else Decimal(row[11]),
    )


class CandleStore:
    """Async SQLite store for computed candles.

    Args:
        database: Connected Database.
        batch_size: Maximum rows per executemany in write_candles().
    """

    def __init__(self, database: Database, batch_size: int = 500) -> None:
        self._database = database
        self._batch_size = batch_size

    async def write_candle(self, candle: Candle) -> None:
        """Write one candle, replacing any existing candle with the same key."""
        await self.write_candles([candle])

    async def write_candles(self, candles: Sequence[Candle]) -> int:
        """Bulk-write candles in batches, replacing existing keys.

        Returns the number of candles written.

        Raises:
            PersistenceError: If any batch fails to write.
        """
        if not candles:
            return 0

        db = self._database.db
        for offset in range(0, len(candles), self._batch_size):
            batch = [_to_row(c) for c in candles[offset : offset + self._batch_size]]
            try:
                await db.executemany(
                    f"INSERT OR REPLACE INTO candles ({_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    batch,
                )
                await db.commit()
            except aiosqlite.Error as e:
                raise PersistenceError(
                    f"Failed to write {len(batch)} candles: {e}"
                ) from e

        logger.debug(
            "candles_written",
            asset_id=candles[0].asset_id,
            timeframe=candles[0].timeframe.value,
            count=len(candles),
        )
        return len(candles)

    async def query_candle(
        self, asset_id: str, timeframe: Timeframe, period_end_ms: int
    ) -> Candle | None:
        """Fetch the candle stored at an exact key, or None."""
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM candles "
            "WHERE asset_id = ? AND timeframe = ? AND period_end_ms = ?",
            (asset_id, timeframe.value, period_end_ms),
        )
        row = await cursor.fetchone()
        return None if row is None else _from_row(row)

    async def query_candles(
        self,
        asset_id: str,
        timeframe: Timeframe,
        since_ms: int,
        until_ms: int,
    ) -> list[Candle]:
        """Query candles with since_ms <= period_end_ms <= until_ms.

        Returns candles ordered by period_end_ms ASC.
        """
        cursor = await self._database.db.execute(
            f"SELECT {_COLUMNS} FROM candles "
            "WHERE asset_id = ? AND timeframe = ? "
            "AND period_end_ms >= ? AND period_end_ms <= ? "
            "ORDER BY period_end_ms ASC",
            (asset_id, timeframe.value, since_ms, until_ms),
        )
        rows = await cursor.fetchall()
        return [_from_row(row) for row in rows]
