"""Append-only raw sample store.

Samples are keyed by (asset_id, measurement, timestamp_ms). Writing a key
that already exists is a no-op (INSERT OR IGNORE): samples are never updated
or deleted.

CRITICAL: Values stored as TEXT in SQLite, restored as Decimal on read.
"""

from collections.abc import Iterable
from decimal import Decimal

import aiosqlite

from ohlcv.exceptions import PersistenceError
from ohlcv.logging import get_logger
from ohlcv.models import Measurement, PriceSample
from ohlcv.store.database import Database

logger = get_logger(__name__)


class SampleStore:
    """Async SQLite store for raw price and volume samples.

    Usage:
        async with Database("data/ohlcv.db") as database:
            store = SampleStore(database)
            inserted = await store.write_sample(Measurement.PRICE, "SOL", ts, price)
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def write_sample(
        self,
        measurement: Measurement,
        asset_id: str,
        timestamp_ms: int,
        value: Decimal,
    ) -> bool:
        """Insert one sample. Returns False when the timestamp already existed."""
        inserted = await self.write_samples(
            measurement, asset_id, [(timestamp_ms, value)]
        )
        return inserted == 1

    async def write_price_sample(self, sample: PriceSample) -> bool:
        """Insert a live price sample. Returns False when it already existed."""
        return await self.write_sample(
            Measurement.PRICE, sample.asset_id, sample.timestamp_ms, sample.price
        )

    async def write_samples(
        self,
        measurement: Measurement,
        asset_id: str,
        samples: Iterable[tuple[int, Decimal]],
    ) -> int:
        """Insert (timestamp_ms, value) samples, ignoring existing timestamps.

        Returns the number of actually inserted rows (excludes ignored duplicates).

        Raises:
            PersistenceError: If the write fails.
        """
        data = [
            (asset_id, measurement.value, ts, str(value)) for ts, value in samples
        ]
        if not data:
            return 0

        try:
            cursor = await self._database.db.executemany(
                "INSERT OR IGNORE INTO samples "
                "(asset_id, measurement, timestamp_ms, value) "
                "VALUES (?, ?, ?, ?)",
                data,
            )
            await self._database.db.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(
                f"Failed to write {len(data)} {measurement.value} samples "
                f"for {asset_id}: {e}"
            ) from e

        inserted = cursor.rowcount
        logger.debug(
            "inserted_samples",
            asset_id=asset_id,
            measurement=measurement.value,
            total=len(data),
            inserted=inserted,
        )
        return inserted

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def query_samples(
        self,
        measurement: Measurement,
        asset_id: str,
        since_ms: int,
        until_ms: int,
    ) -> list[tuple[int, Decimal]]:
        """Query samples with since_ms <= timestamp_ms <= until_ms.

        Returns (timestamp_ms, value) pairs ordered by timestamp ASC.
        """
        cursor = await self._database.db.execute(
            "SELECT timestamp_ms, value FROM samples "
            "WHERE asset_id = ? AND measurement = ? "
            "AND timestamp_ms >= ? AND timestamp_ms <= ? "
            "ORDER BY timestamp_ms ASC",
            (asset_id, measurement.value, since_ms, until_ms),
        )
        rows = await cursor.fetchall()
        return [(row[0], Decimal(row[1])) for row in rows]

    async def count_samples(self, measurement: Measurement, asset_id: str) -> int:
        """Total samples stored for an asset and measurement."""
        cursor = await self._database.db.execute(
            "SELECT COUNT(*) FROM samples WHERE asset_id = ? AND measurement = ?",
            (asset_id, measurement.value),
        )
        return (await cursor.fetchone())[0]
