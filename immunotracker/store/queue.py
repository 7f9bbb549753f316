"""Sync queue repository over the offline store."""

import logging
from typing import Any, Dict, List, Optional

from ..utils.exceptions import StorageError
from .database import OfflineStore
from .models import ALL, ByIndex, ByKey, RecordType, SyncQueueEntry, SyncStatus

logger = logging.getLogger(__name__)


class SyncQueue:
    """Typed access to queued offline writes.

    Entries move ``pending -> failed`` on a failed replay and are removed on
    success. Nothing here retries automatically; ``reset_failed`` is the only
    way back to ``pending``.
    """

    def __init__(self, store: OfflineStore):
        self.store = store

    async def enqueue(
        self,
        entry_type: str,
        payload: Any,
        url: Optional[str] = None,
        method: str = "POST",
    ) -> SyncQueueEntry:
        """Queue a write for later replay; durable once this returns."""
        record = {
            "type": entry_type,
            "payload": payload,
            "url": url,
            "method": method.upper(),
            "error": None,
            "attempts": 0,
        }
        key = await self.store.put(RecordType.SYNC_QUEUE, record)
        entry = await self.get(key)
        if entry is None:
            raise StorageError(f"Sync queue entry {key} vanished after enqueue")

        logger.info(f"Queued offline {entry.method} {entry.type} write {entry.id}")
        return entry

    async def get(self, entry_id: str) -> Optional[SyncQueueEntry]:
        record = await self.store.get(RecordType.SYNC_QUEUE, ByKey(entry_id))
        return SyncQueueEntry(**record) if record else None

    async def _by_status(self, status: SyncStatus) -> List[SyncQueueEntry]:
        records = await self.store.get(RecordType.SYNC_QUEUE, ByIndex("status", status.value))
        entries = [SyncQueueEntry(**record) for record in records]
        entries.sort(key=lambda e: e.timestamp)
        return entries

    async def pending(self) -> List[SyncQueueEntry]:
        """Pending entries, oldest first."""
        return await self._by_status(SyncStatus.PENDING)

    async def failed(self) -> List[SyncQueueEntry]:
        """Failed entries, oldest first."""
        return await self._by_status(SyncStatus.FAILED)

    async def all(self) -> List[SyncQueueEntry]:
        records = await self.store.get(RecordType.SYNC_QUEUE, ALL)
        return sorted((SyncQueueEntry(**r) for r in records), key=lambda e: e.timestamp)

    async def remove(self, entry_id: str) -> bool:
        """Drop an entry after a confirmed successful replay."""
        return await self.store.delete(RecordType.SYNC_QUEUE, entry_id)

    async def mark_failed(self, entry_id: str, error: str) -> Optional[SyncQueueEntry]:
        """Record a failed replay and keep the entry for operator review.

        Returns:
            Updated entry, or None if it no longer exists
        """
        entry = await self.get(entry_id)
        if entry is None:
            logger.warning(f"Cannot mark missing sync queue entry {entry_id} as failed")
            return None

        updated = entry.model_copy(
            update={
                "status": SyncStatus.FAILED.value,
                "error": error,
                "attempts": entry.attempts + 1,
            }
        )
        await self.store.put(RecordType.SYNC_QUEUE, updated.model_dump(), offline=False)
        logger.warning(f"Sync queue entry {entry_id} failed: {error}")
        return updated

    async def reset_failed(self) -> int:
        """Move every failed entry back to pending, keeping its original timestamp.

        Returns:
            Number of entries reset
        """
        failed = await self.failed()
        for entry in failed:
            reset = entry.model_copy(update={"status": SyncStatus.PENDING.value, "error": None})
            await self.store.put(RecordType.SYNC_QUEUE, reset.model_dump(), offline=False)

        if failed:
            logger.info(f"Reset {len(failed)} failed sync queue entries to pending")
        return len(failed)

    async def count_pending(self) -> int:
        return await self.store.count(
            RecordType.SYNC_QUEUE, ByIndex("status", SyncStatus.PENDING.value)
        )

    async def count_by_status(self) -> Dict[str, int]:
        """Entry counts keyed by status value."""
        return {
            status.value: await self.store.count(
                RecordType.SYNC_QUEUE, ByIndex("status", status.value)
            )
            for status in SyncStatus
        }
