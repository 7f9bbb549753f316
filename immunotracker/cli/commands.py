"""Subcommand implementations for the immunotracker command line."""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, List, Optional

from ..cache.tiers import CacheStorage
from ..engine.due_status import (
    due_vaccines,
    next_due_label,
    schedule_overview,
    vaccination_status,
)
from ..network.router import FetchRouter
from ..network.transport import HTTPTransport
from ..schedule.definitions import VACCINE_CALENDAR, get_definition
from ..store.database import OfflineStore
from ..store.queue import SyncQueue
from ..sync.coordinator import SyncCoordinator
from ..sync.notifications import ClientBroadcaster, log_client
from ..utils.exceptions import InvalidInputError
from ..utils.helpers import epoch_millis, format_time_ago

logger = logging.getLogger(__name__)


def _administered_records(vaccine_ids: List[str]) -> List[dict]:
    unknown = [vaccine_id for vaccine_id in vaccine_ids if get_definition(vaccine_id) is None]
    if unknown:
        raise InvalidInputError(f"Unknown vaccine id: {', '.join(unknown)}")
    return [{"vaccineId": vaccine_id, "administered": True} for vaccine_id in vaccine_ids]


def run_schedule_command(args: Any) -> int:
    """Print the calendar, or every dose still to give for ``--dob``."""
    dob: Optional[date] = getattr(args, "dob", None)
    if dob is None:
        for definition in VACCINE_CALENDAR:
            start, end = definition.window
            print(f"{definition.id:<14} {definition.display_name:<40} weeks {start}-{end}")
        return 0

    today = args.as_of or date.today()
    for due in schedule_overview(dob, [], today):
        label = due.definition.display_name
        print(f"{due.vaccine_id:<14} {label:<40} {due.status.value:<9} {due.due_date}")
    return 0


def run_status_command(args: Any) -> int:
    """Print due and overdue doses for one child."""
    today = args.as_of or date.today()
    administered = _administered_records(args.given)

    pending = due_vaccines(args.dob, administered, today)
    print(f"Status:   {vaccination_status(args.dob, administered, today)}")
    print(f"Next due: {next_due_label(args.dob, administered, today)}")
    for due in pending:
        print(f"  {due.definition.display_name:<40} {due.status.value:<9} due {due.due_date}")
    return 0


@asynccontextmanager
async def sync_stack(settings: Any) -> AsyncIterator[SyncCoordinator]:
    """Open the store, cache and transport and yield a coordinator over them."""
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    store = OfflineStore(settings.database_file)
    queue = SyncQueue(store)
    cache = CacheStorage(settings.cache_file, base_url=settings.origin)
    broadcaster = ClientBroadcaster()
    broadcaster.register(log_client)
    logger.debug(f"Opening sync stack in {settings.data_dir}")

    async with HTTPTransport(settings) as transport:
        router = FetchRouter(settings, cache, transport, queue=queue, broadcaster=broadcaster)
        yield SyncCoordinator(settings, router, queue, broadcaster=broadcaster)


async def run_sync_command(args: Any, settings: Any) -> int:
    """Replay queued writes; optionally retry failures and run maintenance."""
    async with sync_stack(settings) as coordinator:
        if args.retry_failed:
            reset = await coordinator.reset_failed()
            print(f"Reset {reset} failed entries")

        summary = await coordinator.drain()
        print(f"Synced {summary.successful}/{summary.total} entries ({summary.failed} failed)")

        if args.maintenance:
            results = await coordinator.run_maintenance()
            for name, value in results.items():
                print(f"{name}: {value}")

    return 0 if summary.failed == 0 else 1


async def run_queue_command(args: Any, settings: Any) -> int:
    """Show sync queue counts and, with ``--failed``, the failed entries."""
    async with sync_stack(settings) as coordinator:
        queue = coordinator.queue
        if args.reset:
            reset = await queue.reset_failed()
            print(f"Reset {reset} failed entries")

        status = await coordinator.get_sync_status()
        print(f"Pending: {status.pending_syncs}")
        print(f"Failed:  {status.failed_syncs}")
        last_sync = "never"
        if status.last_sync:
            last_sync = format_time_ago(status.last_sync, epoch_millis())
        print(f"Last sync: {last_sync}")

        if args.failed:
            for entry in await queue.failed():
                print(f"  {entry.id} {entry.type} attempts={entry.attempts} error={entry.error}")
    return 0


__all__ = [
    "run_queue_command",
    "run_schedule_command",
    "run_status_command",
    "run_sync_command",
    "sync_stack",
]
