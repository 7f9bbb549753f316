"""Additive schema migrations for the offline store."""

import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Tuple, cast

import aiosqlite

from ..utils.exceptions import StorageError
from .models import STORE_SCHEMAS

logger = logging.getLogger(__name__)

Migration = Callable[[aiosqlite.Connection], Awaitable[None]]


async def _create_record_tables(db: aiosqlite.Connection) -> None:
    """v1: one table per record type with JSON body plus index columns."""
    for schema in STORE_SCHEMAS.values():
        index_columns = "".join(f', "{name}"' for name in schema.indexes)
        await db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {schema.table} (
                key TEXT PRIMARY KEY,
                data TEXT NOT NULL{index_columns},
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """
        )
        for name in schema.indexes:
            await db.execute(
                f"""
                CREATE INDEX IF NOT EXISTS idx_{schema.table}_{name.lower()}
                ON {schema.table}("{name}")
            """
            )


async def _add_queue_status_time_index(db: aiosqlite.Connection) -> None:
    """v2: composite index for ordered draining of pending entries."""
    await db.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_sync_queue_status_timestamp
        ON sync_queue("status", "timestamp")
    """
    )


# Additive only: new tables and indexes, never drops or rewrites
MIGRATIONS: List[Tuple[int, Migration]] = [
    (1, _create_record_tables),
    (2, _add_queue_status_time_index),
]

SCHEMA_VERSION = MIGRATIONS[-1][0]


class DatabaseMigration:
    """Brings an offline store database up to the current schema version."""

    def __init__(self, database_path: Path):
        """Initialize migration handler.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = database_path

    async def get_current_version(self) -> int:
        """Get current database schema version.

        Raises:
            StorageError: If the database cannot be read
        """
        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                cursor = await db.execute("PRAGMA user_version")
                row = await cursor.fetchone()
                return cast(int, row[0]) if row else 0
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"Failed to read schema version: {e}") from e

    async def migrate(self) -> int:
        """Apply every migration newer than the stored version.

        Each step runs in its own transaction together with the version bump.

        Returns:
            The schema version after migrating

        Raises:
            StorageError: If any migration step fails
        """
        current = await self.get_current_version()
        if current >= SCHEMA_VERSION:
            logger.debug(f"Offline store schema at v{current}, nothing to migrate")
            return current

        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                await db.execute("PRAGMA journal_mode=WAL")
                for version, step in MIGRATIONS:
                    if version <= current:
                        continue
                    logger.info(f"Applying offline store migration v{current} -> v{version}")
                    await step(db)
                    await db.execute(f"PRAGMA user_version = {version}")
                    await db.commit()
                    current = version
        except (aiosqlite.Error, OSError) as e:
            raise StorageError(f"Offline store migration to v{current + 1} failed: {e}") from e

        logger.info(f"Offline store schema at v{current}")
        return current
