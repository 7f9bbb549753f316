"""Durable, indexed record storage for offline operation."""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union, overload

import aiosqlite

from ..utils.exceptions import InvalidInputError, StorageError, UnknownRecordTypeError
from ..utils.helpers import epoch_millis
from .migrations import DatabaseMigration
from .models import (
    ALL,
    STORE_SCHEMAS,
    AllRecords,
    ByIndex,
    ByKey,
    RecordType,
    Selector,
    StoreSchema,
    SyncStatus,
)

logger = logging.getLogger(__name__)


def resolve_record_type(record_type: Union[RecordType, str]) -> Tuple[RecordType, StoreSchema]:
    """Map a record type name to its schema.

    Raises:
        UnknownRecordTypeError: If the type is not one the store holds
    """
    try:
        resolved = RecordType(record_type)
    except ValueError as e:
        raise UnknownRecordTypeError(f"Unknown record type: {record_type!r}") from e
    return resolved, STORE_SCHEMAS[resolved]


class OfflineStore:
    """Record store keyed by logical type with secondary-index lookups.

    Records are JSON documents. Every read deserializes a fresh copy, so
    callers never hold a reference into the store. Writes are committed
    before the call returns.
    """

    def __init__(self, database_path: Union[Path, str]):
        """Initialize offline store.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialized = False
        self._initialization_lock: Optional[asyncio.Lock] = None

        logger.info(f"Offline store initialized (lazy): {self.database_path}")

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        if self._initialization_lock is None:
            self._initialization_lock = asyncio.Lock()

        async with self._initialization_lock:
            if self._initialized:
                return
            await DatabaseMigration(self.database_path).migrate()
            self._initialized = True

    async def initialize(self) -> int:
        """Create or upgrade the schema now instead of on first use.

        Returns:
            Schema version
        """
        await self._ensure_initialized()
        return await DatabaseMigration(self.database_path).get_current_version()

    @asynccontextmanager
    async def _connect(self, action: str) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection, translating sqlite failures into StorageError."""
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self.database_path)) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except (aiosqlite.Error, OSError) as e:
            logger.exception(f"Offline store failed to {action}")
            raise StorageError(f"Failed to {action}: {e}") from e

    def _prepare(
        self,
        record_type: RecordType,
        schema: StoreSchema,
        record: Dict[str, Any],
        offline: Optional[bool],
    ) -> Dict[str, Any]:
        if not isinstance(record, dict):
            raise InvalidInputError(f"{record_type.value} record must be a mapping")

        prepared = dict(record)
        if prepared.get(schema.key_path) in (None, ""):
            if not schema.auto_key:
                raise InvalidInputError(
                    f"{record_type.value} records require a '{schema.key_path}' field"
                )
            prepared[schema.key_path] = uuid.uuid4().hex

        if offline is None:
            offline = record_type == RecordType.SYNC_QUEUE
        if offline:
            prepared["offline"] = True
            prepared["timestamp"] = epoch_millis()
            prepared["status"] = SyncStatus.PENDING.value

        return prepared

    async def put(
        self,
        record_type: Union[RecordType, str],
        record: Dict[str, Any],
        offline: Optional[bool] = None,
    ) -> str:
        """Insert or replace a record.

        Queue-bound writes are stamped as offline, pending and timestamped
        with the current time. Sync queue records are queue-bound unless
        ``offline=False`` is passed, which is how existing entries are updated.

        Args:
            record_type: Target record type
            record: Record body; the caller's mapping is not modified
            offline: Force (True) or suppress (False) the offline stamp

        Returns:
            The record's key

        Raises:
            UnknownRecordTypeError: If the record type is unknown
            InvalidInputError: If the record cannot be keyed
            StorageError: If the write could not be committed
        """
        resolved, schema = resolve_record_type(record_type)
        prepared = self._prepare(resolved, schema, record, offline)
        key = str(prepared[schema.key_path])

        try:
            body = json.dumps(prepared, default=str)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"{resolved.value} record is not serializable: {e}") from e

        columns = ["key", "data", *schema.indexes]
        values = [key, body, *(self._index_value(prepared.get(name)) for name in schema.indexes)]
        placeholders = ", ".join("?" for _ in columns)
        column_sql = ", ".join(f'"{c}"' for c in columns)

        async with self._connect(f"write {resolved.value} record") as db:
            await db.execute(
                f"INSERT OR REPLACE INTO {schema.table} ({column_sql}) VALUES ({placeholders})",
                values,
            )
            await db.commit()

        logger.debug(f"Stored {resolved.value} record {key}")
        return key

    @staticmethod
    def _index_value(value: Any) -> Any:
        if value is None or isinstance(value, (str, int, float)):
            return value
        return json.dumps(value, default=str)

    def _where(self, schema: StoreSchema, selector: Selector) -> Tuple[str, List[Any]]:
        if isinstance(selector, ByKey):
            return "WHERE key = ?", [str(selector.key)]
        if isinstance(selector, ByIndex):
            if selector.index not in schema.indexes:
                raise InvalidInputError(
                    f"No index '{selector.index}' on {schema.table}; "
                    f"available: {', '.join(schema.indexes) or 'none'}"
                )
            return f'WHERE "{selector.index}" = ?', [self._index_value(selector.value)]
        if isinstance(selector, AllRecords):
            return "", []
        raise InvalidInputError(f"Unsupported selector: {selector!r}")

    @overload
    async def get(self, record_type: Union[RecordType, str], selector: ByKey) -> Optional[dict]:
        ...

    @overload
    async def get(
        self, record_type: Union[RecordType, str], selector: Union[ByIndex, AllRecords] = ...
    ) -> List[dict]:
        ...

    async def get(
        self, record_type: Union[RecordType, str], selector: Selector = ALL
    ) -> Union[Optional[dict], List[dict]]:
        """Read a snapshot of records.

        Args:
            record_type: Record type to read
            selector: ``ByKey`` for one record (or None), ``ByIndex`` or
                ``AllRecords`` for a list in insertion order

        Raises:
            UnknownRecordTypeError: If the record type is unknown
            InvalidInputError: If the selector names an unknown index
            StorageError: If the read fails
        """
        resolved, schema = resolve_record_type(record_type)
        where, params = self._where(schema, selector)

        async with self._connect(f"read {resolved.value} records") as db:
            cursor = await db.execute(
                f"SELECT data FROM {schema.table} {where} ORDER BY rowid", params
            )
            rows = await cursor.fetchall()

        records = [json.loads(row["data"]) for row in rows]
        if isinstance(selector, ByKey):
            return records[0] if records else None
        return records

    async def count(self, record_type: Union[RecordType, str], selector: Selector = ALL) -> int:
        """Count records matching the selector."""
        resolved, schema = resolve_record_type(record_type)
        where, params = self._where(schema, selector)

        async with self._connect(f"count {resolved.value} records") as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM {schema.table} {where}", params)
            row = await cursor.fetchone()

        return int(row[0]) if row else 0

    async def delete(self, record_type: Union[RecordType, str], key: Union[str, int]) -> bool:
        """Delete one record by key.

        Returns:
            True if a record was removed
        """
        resolved, schema = resolve_record_type(record_type)

        async with self._connect(f"delete {resolved.value} record") as db:
            cursor = await db.execute(f"DELETE FROM {schema.table} WHERE key = ?", [str(key)])
            await db.commit()
            removed = cursor.rowcount > 0

        logger.debug(f"Deleted {resolved.value} record {key}: {removed}")
        return removed

    async def clear(self, record_type: Union[RecordType, str]) -> int:
        """Remove every record of a type.

        Returns:
            Number of records removed
        """
        resolved, schema = resolve_record_type(record_type)

        async with self._connect(f"clear {resolved.value} records") as db:
            cursor = await db.execute(f"DELETE FROM {schema.table}")
            await db.commit()
            removed = cursor.rowcount

        logger.info(f"Cleared {removed} {resolved.value} records")
        return removed

    async def get_database_info(self) -> Dict[str, Any]:
        """Schema version, file size and per-type record counts."""
        info: Dict[str, Any] = {
            "database_path": str(self.database_path),
            "schema_version": await DatabaseMigration(self.database_path).get_current_version(),
            "file_size_bytes": (
                self.database_path.stat().st_size if self.database_path.exists() else 0
            ),
        }
        for record_type in RecordType:
            info[record_type.value] = await self.count(record_type)
        return info
