"""Replays queued offline writes and runs periodic cache maintenance."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from ..network.models import FetchRequest, FetchResponse
from ..network.router import FetchRouter
from ..store.models import SyncQueueEntry
from ..store.queue import SyncQueue
from ..utils.exceptions import (
    BackendRejectionError,
    CacheError,
    StorageError,
    TransientNetworkError,
)
from ..utils.helpers import epoch_millis
from .notifications import SYNC_COMPLETED, UPDATE_AVAILABLE, ClientBroadcaster

logger = logging.getLogger(__name__)

SYNC_OFFLINE_DATA = "sync-offline-data"
SYNC_PERIODIC = "sync-periodic"
UPDATE_CACHE = "update-cache"
SYNC_STATS = "sync-stats"

REPLAY_HEADER = "X-Offline-Sync"
ENTRY_ID_HEADER = "X-Sync-Entry-Id"
MAX_ERROR_DETAIL = 500


class SyncSummary(BaseModel):
    """Outcome of one drain pass."""

    successful: int = 0
    failed: int = 0
    total: int = 0
    skipped: int = Field(default=0, description="Entries already in flight from another drain")


class SyncStatusReport(BaseModel):
    """Snapshot answered to sync-status queries."""

    last_sync: Optional[int] = Field(default=None, serialization_alias="lastSync")
    pending_syncs: int = Field(default=0, serialization_alias="pendingSyncs")
    failed_syncs: int = Field(default=0, serialization_alias="failedSyncs")
    is_online: bool = Field(default=True, serialization_alias="isOnline")

    model_config = ConfigDict(populate_by_name=True)


class SyncCoordinator:
    """Drains the sync queue against the backend and keeps cache tiers fresh.

    Replays are independent: each entry succeeds or fails on its own and an
    entry is only removed after the backend confirmed it. Failed entries stay
    failed until :meth:`reset_failed` is called.
    """

    def __init__(
        self,
        settings: Any,
        router: FetchRouter,
        queue: SyncQueue,
        broadcaster: Optional[ClientBroadcaster] = None,
    ):
        """Initialize sync coordinator.

        Args:
            settings: Application settings
            router: Fetch router providing the network path and cache tiers
            queue: Sync queue to drain
            broadcaster: Client notification channel
        """
        self.settings = settings
        self.router = router
        self.transport = router.transport
        self.queue = queue
        self.broadcaster = broadcaster or ClientBroadcaster()
        self.online = True
        self._in_flight: Set[str] = set()
        self._registered: Set[str] = set()

        logger.debug("Sync coordinator initialized")

    # Write replay

    def _replay_request(self, entry: SyncQueueEntry) -> FetchRequest:
        url = entry.url or f"{self.settings.api_base_url.rstrip('/')}/{entry.type}"
        return FetchRequest(
            url=url,
            method=entry.method,
            headers={
                "Content-Type": "application/json",
                REPLAY_HEADER: "true",
                ENTRY_ID_HEADER: entry.id,
            },
            body=json.dumps(entry.payload).encode("utf-8"),
        )

    @staticmethod
    def _rejection(response: FetchResponse) -> BackendRejectionError:
        detail = response.text()[:MAX_ERROR_DETAIL]
        return BackendRejectionError(
            f"HTTP {response.status}: {detail}" if detail else f"HTTP {response.status}",
            status_code=response.status,
            detail=detail,
        )

    async def _replay(self, entry: SyncQueueEntry) -> bool:
        """Replay one entry; True only once it is confirmed and removed."""
        try:
            response = await self.transport.fetch(self._replay_request(entry))
        except TransientNetworkError as e:
            await self.queue.mark_failed(entry.id, e.message)
            return False

        if not response.ok:
            await self.queue.mark_failed(entry.id, self._rejection(response).message)
            return False

        try:
            await self.queue.remove(entry.id)
        except StorageError:
            # Accepted by the backend but still queued; the next drain replays it
            logger.exception(f"Replayed entry {entry.id} could not be removed")
            return False

        logger.debug(f"Synced {entry.type} entry {entry.id}")
        return True

    async def drain(self) -> SyncSummary:
        """Replay every pending entry concurrently and report the outcome.

        Emits one ``SYNC_COMPLETED`` message and refreshes the last-sync marker
        whatever the individual results.

        Raises:
            StorageError: If the pending entries cannot be read
        """
        pending = await self.queue.pending()
        batch = [entry for entry in pending if entry.id not in self._in_flight]
        skipped = len(pending) - len(batch)
        batch_ids = {entry.id for entry in batch}
        self._in_flight.update(batch_ids)

        logger.info(f"Syncing {len(batch)} offline entries ({skipped} already in flight)")
        try:
            results = await asyncio.gather(
                *(self._replay(entry) for entry in batch), return_exceptions=True
            )
        finally:
            self._in_flight.difference_update(batch_ids)

        for entry, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.error(f"Replay of entry {entry.id} raised: {result}")

        successful = sum(1 for result in results if result is True)
        summary = SyncSummary(
            successful=successful,
            failed=len(results) - successful,
            total=len(results),
            skipped=skipped,
        )
        logger.info(f"Sync completed: {summary.successful} successful, {summary.failed} failed")

        await self.broadcaster.broadcast(
            SYNC_COMPLETED,
            {"successful": summary.successful, "failed": summary.failed, "total": summary.total},
        )
        try:
            await self.router.update_last_sync()
        except CacheError as e:
            logger.warning(f"Could not update last-sync marker: {e.message}")

        return summary

    async def reset_failed(self) -> int:
        """Return failed entries to pending so the next drain reconsiders them."""
        return await self.queue.reset_failed()

    async def retry_failed(self) -> SyncSummary:
        """Reset failed entries and drain immediately."""
        await self.reset_failed()
        return await self.drain()

    # Periodic maintenance

    async def refresh_static_tier(self) -> int:
        """Re-fetch every entry held in the static tier, overwriting on success.

        Returns:
            Number of entries refreshed
        """
        tier = await self.router.static_tier()
        refreshed = 0
        for url in await tier.keys():
            try:
                response = await self.transport.fetch(FetchRequest(url=url))
            except TransientNetworkError:
                logger.warning(f"Failed to update cache for: {url}")
                continue
            if response.ok:
                await tier.put(url, response)
                refreshed += 1

        logger.info(f"Cache update completed: {refreshed} entries refreshed")
        return refreshed

    async def sync_statistics(self) -> int:
        """Refresh the aggregate-statistics endpoints into the API tier.

        Returns:
            Number of endpoints refreshed
        """
        tier = await self.router.api_tier()
        urls = [self.transport.absolute_url(path) for path in self.settings.stats_endpoints]
        responses = await asyncio.gather(
            *(self.transport.fetch(FetchRequest(url=url)) for url in urls),
            return_exceptions=True,
        )

        stored = 0
        for url, response in zip(urls, responses):
            if isinstance(response, FetchResponse) and response.ok:
                await tier.put(url, response)
                stored += 1
            else:
                logger.warning(f"Statistics sync failed for {url}")

        logger.info(f"Statistics synced: {stored}/{len(urls)} endpoints")
        return stored

    async def check_for_updates(self) -> Optional[str]:
        """Compare the deployed version marker against the running version.

        Emits ``UPDATE_AVAILABLE`` when they differ; nothing is applied.

        Returns:
            The newer deployed version, or None
        """
        request = FetchRequest(
            url=self.settings.version_url, headers={"Cache-Control": "no-store"}
        )
        try:
            response = await self.transport.fetch(request)
            if not response.ok:
                return None
            version = response.json_body().get("version")
        except (TransientNetworkError, ValueError, AttributeError) as e:
            logger.debug(f"Version check failed: {e}")
            return None

        if not version or str(version) == self.settings.app_version:
            return None

        logger.info(f"Update available: {version} (running {self.settings.app_version})")
        await self.broadcaster.broadcast(UPDATE_AVAILABLE, {"version": str(version)})
        return str(version)

    async def run_maintenance(self) -> Dict[str, Any]:
        """Statistics, static tier refresh and version check in one pass."""
        try:
            stats = await self.sync_statistics()
            refreshed = await self.refresh_static_tier()
            update = await self.check_for_updates()
        except CacheError as e:
            logger.error(f"Periodic sync error: {e.message}")
            return {"success": False, "error": e.message}

        return {
            "success": True,
            "timestamp": epoch_millis(),
            "statistics": stats,
            "refreshed": refreshed,
            "update": update,
        }

    # Triggers

    async def handle_sync(self, tag: str) -> Any:
        """Run the work associated with a sync tag.

        Returns:
            The handler's result, or None for an unknown tag
        """
        logger.info(f"Sync triggered: {tag}")
        if tag == SYNC_OFFLINE_DATA:
            return await self.drain()
        if tag == SYNC_PERIODIC:
            return await self.run_maintenance()
        if tag == UPDATE_CACHE:
            return await self.refresh_static_tier()
        if tag == SYNC_STATS:
            return await self.sync_statistics()

        logger.warning(f"Unknown sync tag: {tag}")
        return None

    async def register_sync(self, tag: str) -> bool:
        """Request a sync opportunity for a tag.

        While online the tag runs immediately; while offline it is held until
        connectivity returns.

        Returns:
            True if the tag was accepted
        """
        if not tag:
            return False

        if self.online:
            await self.handle_sync(tag)
        else:
            self._registered.add(tag)
            logger.info(f"Background sync registered: {tag}")
        return True

    @property
    def registered_tags(self) -> List[str]:
        return sorted(self._registered)

    async def connectivity_restored(self) -> SyncSummary:
        """Go online, drain the queue and run any held sync tags."""
        logger.info("Connectivity restored")
        self.online = True
        held = self._registered - {SYNC_OFFLINE_DATA}
        self._registered.clear()

        summary = await self.drain()
        for tag in sorted(held):
            await self.handle_sync(tag)
        return summary

    def connectivity_lost(self) -> None:
        logger.info("Connectivity lost")
        self.online = False

    async def get_sync_status(self) -> SyncStatusReport:
        """Last sync time, queue counts and connectivity."""
        try:
            last_sync = await self.router.last_sync()
        except CacheError as e:
            logger.warning(f"Could not read last-sync marker: {e.message}")
            last_sync = None

        counts = await self.queue.count_by_status()
        return SyncStatusReport(
            last_sync=last_sync,
            pending_syncs=counts.get("pending", 0),
            failed_syncs=counts.get("failed", 0),
            is_online=self.online,
        )

    async def run_periodic(
        self, interval: Optional[float] = None, iterations: Optional[int] = None
    ) -> None:
        """Drain and run maintenance every ``interval`` seconds.

        Args:
            interval: Seconds between passes (defaults to the configured interval)
            iterations: Stop after this many passes; run forever when None
        """
        period = interval if interval is not None else self.settings.periodic_sync_interval
        completed = 0

        while iterations is None or completed < iterations:
            await asyncio.sleep(period)
            try:
                if self.online:
                    await self.drain()
                    await self.run_maintenance()
                else:
                    logger.debug("Offline, skipping periodic sync")
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Periodic sync pass failed")
            completed += 1
