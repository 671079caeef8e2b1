"""Tracked asset registry.

The engine only reads the registry, except for venue_id which it writes back
after resolving an asset's primary trading venue.
"""

import time

import aiosqlite

from ohlcv.exceptions import PersistenceError
from ohlcv.logging import get_logger
from ohlcv.models import Asset
from ohlcv.store.database import Database

logger = get_logger(__name__)


class AssetRegistry:
    """Async SQLite view of tracked assets."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def upsert_asset(
        self,
        asset_id: str,
        symbol: str,
        is_active: bool = True,
        venue_id: str | None = None,
    ) -> None:
        """Add or update an asset, preserving added_at and a cached venue_id.

        Raises:
            PersistenceError: If the write fails.
        """
        now_ms = int(time.time() * 1000)
        try:
            await self._database.db.execute(
                "INSERT INTO assets (asset_id, symbol, venue_id, is_active, added_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(asset_id) DO UPDATE SET "
                "symbol = excluded.symbol, "
                "is_active = excluded.is_active, "
                "venue_id = COALESCE(excluded.venue_id, assets.venue_id)",
                (asset_id, symbol, venue_id, 1 if is_active else 0, now_ms),
            )
            await self._database.db.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Failed to upsert asset {asset_id}: {e}") from e

    async def set_venue_id(self, asset_id: str, venue_id: str) -> None:
        """Cache a resolved venue id on the asset record.

        Raises:
            PersistenceError: If the write fails.
        """
        try:
            await self._database.db.execute(
                "UPDATE assets SET venue_id = ? WHERE asset_id = ?",
                (venue_id, asset_id),
            )
            await self._database.db.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(
                f"Failed to cache venue_id for {asset_id}: {e}"
            ) from e
        logger.debug("venue_id_cached", asset_id=asset_id, venue_id=venue_id)

    async def get_asset(self, asset_id: str) -> Asset | None:
        """Fetch an asset by id (active or not), or None."""
        cursor = await self._database.db.execute(
            "SELECT asset_id, symbol, venue_id, is_active FROM assets "
            "WHERE asset_id = ?",
            (asset_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Asset(
            asset_id=row[0], symbol=row[1], venue_id=row[2], is_active=bool(row[3])
        )

    async def list_active_assets(self) -> list[Asset]:
        """Return all active assets ordered by when they were added."""
        cursor = await self._database.db.execute(
            "SELECT asset_id, symbol, venue_id, is_active FROM assets "
            "WHERE is_active = 1 ORDER BY added_at ASC, asset_id ASC"
        )
        rows = await cursor.fetchall()
        return [
            Asset(asset_id=r[0], symbol=r[1], venue_id=r[2], is_active=bool(r[3]))
            for r in rows
        ]
