"""Named cache tiers mapping request URLs to stored responses."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional, Union
from urllib.parse import urldefrag, urljoin

import aiosqlite

from ..network.models import FetchRequest, FetchResponse
from ..utils.exceptions import CacheError

logger = logging.getLogger(__name__)

CacheKey = Union[str, FetchRequest]


class CacheStorage:
    """Collection of named cache tiers persisted in one SQLite file.

    Relative keys such as ``/index.html`` or ``last-sync`` are resolved against
    ``base_url`` so they match absolute request URLs for the same resource.
    """

    def __init__(self, database_path: Union[Path, str], base_url: str = ""):
        """Initialize cache storage.

        Args:
            database_path: Path to SQLite database file
            base_url: Origin used to resolve relative keys
        """
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/") + "/" if base_url else ""
        self._initialized = False
        self._initialization_lock: Optional[asyncio.Lock] = None

        logger.info(f"Cache storage initialized (lazy): {self.database_path}")

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        if self._initialization_lock is None:
            self._initialization_lock = asyncio.Lock()

        async with self._initialization_lock:
            if self._initialized:
                return
            try:
                async with aiosqlite.connect(str(self.database_path)) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.execute("PRAGMA foreign_keys=ON")
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS cache_tiers (
                            name TEXT PRIMARY KEY,
                            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                        )
                    """
                    )
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS cache_entries (
                            tier TEXT NOT NULL,
                            url TEXT NOT NULL,
                            status INTEGER NOT NULL,
                            headers TEXT NOT NULL,
                            body BLOB NOT NULL,
                            cached_at TEXT NOT NULL,
                            PRIMARY KEY (tier, url),
                            FOREIGN KEY (tier) REFERENCES cache_tiers(name) ON DELETE CASCADE
                        )
                    """
                    )
                    await db.commit()
            except (aiosqlite.Error, OSError) as e:
                raise CacheError(f"Failed to initialize cache storage: {e}") from e
            self._initialized = True

    @asynccontextmanager
    async def connect(self, action: str) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection, translating sqlite failures into CacheError."""
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                await db.execute("PRAGMA foreign_keys=ON")
                db.row_factory = aiosqlite.Row
                yield db
        except (aiosqlite.Error, OSError) as e:
            raise CacheError(f"Failed to {action}: {e}") from e

    def resolve_key(self, key: CacheKey) -> str:
        url = key.cache_key if isinstance(key, FetchRequest) else urldefrag(key)[0]
        return urljoin(self.base_url, url) if self.base_url else url

    async def open(self, name: str) -> "CacheTier":
        """Open a tier, creating it if it does not exist."""
        async with self.connect(f"open cache tier {name}") as db:
            await db.execute("INSERT OR IGNORE INTO cache_tiers (name) VALUES (?)", [name])
            await db.commit()
        return CacheTier(self, name)

    async def keys(self) -> List[str]:
        """Names of every existing tier, oldest first."""
        async with self.connect("list cache tiers") as db:
            cursor = await db.execute("SELECT name FROM cache_tiers ORDER BY rowid")
            rows = await cursor.fetchall()
        return [row["name"] for row in rows]

    async def has(self, name: str) -> bool:
        async with self.connect(f"look up cache tier {name}") as db:
            cursor = await db.execute("SELECT 1 FROM cache_tiers WHERE name = ?", [name])
            row = await cursor.fetchone()
        return row is not None

    async def delete(self, name: str) -> bool:
        """Delete a tier and all of its entries.

        Returns:
            True if the tier existed
        """
        async with self.connect(f"delete cache tier {name}") as db:
            cursor = await db.execute("DELETE FROM cache_tiers WHERE name = ?", [name])
            await db.commit()
            removed = cursor.rowcount > 0

        if removed:
            logger.info(f"Deleted cache tier: {name}")
        return removed

    async def match(self, key: CacheKey) -> Optional[FetchResponse]:
        """Look a key up across every tier, oldest tier first."""
        for name in await self.keys():
            response = await CacheTier(self, name).match(key)
            if response is not None:
                return response
        return None


class CacheTier:
    """One named partition of the cache storage."""

    def __init__(self, storage: CacheStorage, name: str):
        self.storage = storage
        self.name = name

    async def match(self, key: CacheKey) -> Optional[FetchResponse]:
        """Stored response for a request or URL, or None on a miss."""
        url = self.storage.resolve_key(key)
        async with self.storage.connect(f"read {self.name}") as db:
            cursor = await db.execute(
                "SELECT url, status, headers, body, cached_at FROM cache_entries "
                "WHERE tier = ? AND url = ?",
                [self.name, url],
            )
            row = await cursor.fetchone()

        if row is None:
            return None

        return FetchResponse(
            url=row["url"],
            status=row["status"],
            headers=json.loads(row["headers"]),
            body=bytes(row["body"]),
            from_cache=True,
            cached_at=datetime.fromisoformat(row["cached_at"]),
        )

    async def put(self, key: CacheKey, response: FetchResponse) -> None:
        """Store a copy of a response under a request or URL, replacing any previous one."""
        url = self.storage.resolve_key(key)
        async with self.storage.connect(f"write {self.name}") as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO cache_entries (tier, url, status, headers, body, cached_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                [
                    self.name,
                    url,
                    response.status,
                    json.dumps(response.headers),
                    response.body,
                    datetime.now().isoformat(),
                ],
            )
            await db.commit()
        logger.debug(f"Cached {url} in {self.name}")

    async def delete(self, key: CacheKey) -> bool:
        url = self.storage.resolve_key(key)
        async with self.storage.connect(f"delete from {self.name}") as db:
            cursor = await db.execute(
                "DELETE FROM cache_entries WHERE tier = ? AND url = ?", [self.name, url]
            )
            await db.commit()
            return cursor.rowcount > 0

    async def keys(self) -> List[str]:
        """Stored URLs in insertion order."""
        async with self.storage.connect(f"list {self.name}") as db:
            cursor = await db.execute(
                "SELECT url FROM cache_entries WHERE tier = ? ORDER BY rowid", [self.name]
            )
            rows = await cursor.fetchall()
        return [row["url"] for row in rows]

    async def clear(self) -> int:
        """Remove every entry but keep the tier itself."""
        async with self.storage.connect(f"clear {self.name}") as db:
            cursor = await db.execute("DELETE FROM cache_entries WHERE tier = ?", [self.name])
            await db.commit()
            removed = cursor.rowcount
        logger.debug(f"Cleared {removed} entries from {self.name}")
        return removed

    async def put_json(self, key: CacheKey, value: Any) -> None:
        """Store an application value as a JSON response body."""
        url = self.storage.resolve_key(key)
        try:
            response = FetchResponse.json_response(value, url=url)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Value for {url} is not JSON serializable: {e}") from e
        await self.put(url, response)

    async def match_json(self, key: CacheKey) -> Optional[Any]:
        """Decoded JSON value stored under a key, or None on a miss."""
        response = await self.match(key)
        if response is None:
            return None
        try:
            return response.json_body()
        except ValueError as e:
            raise CacheError(f"Cached value for {response.url} is not JSON") from e
