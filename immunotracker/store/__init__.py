"""Offline store: durable records, schema migrations and the sync queue."""

from .database import OfflineStore
from .migrations import SCHEMA_VERSION, DatabaseMigration
from .models import (
    ALL,
    AllRecords,
    ByIndex,
    ByKey,
    RecordType,
    SyncQueueEntry,
    SyncStatus,
)
from .queue import SyncQueue

__all__ = [
    "ALL",
    "AllRecords",
    "ByIndex",
    "ByKey",
    "DatabaseMigration",
    "OfflineStore",
    "RecordType",
    "SCHEMA_VERSION",
    "SyncQueue",
    "SyncQueueEntry",
    "SyncStatus",
]
