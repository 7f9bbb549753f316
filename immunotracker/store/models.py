"""Record types, selectors and queue entry models for the offline store."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class RecordType(str, Enum):
    """Logical record types held by the offline store."""

    CHILDREN = "children"
    VACCINATIONS = "vaccinations"
    SYNC_QUEUE = "syncQueue"
    SETTINGS = "settings"


class StoreSchema(NamedTuple):
    """Physical layout of one record type."""

    table: str
    key_path: str
    indexes: Tuple[str, ...]
    auto_key: bool = True


STORE_SCHEMAS: Dict[RecordType, StoreSchema] = {
    RecordType.CHILDREN: StoreSchema("children", "id", ("status", "facility")),
    RecordType.VACCINATIONS: StoreSchema("vaccinations", "id", ("childId", "status")),
    RecordType.SYNC_QUEUE: StoreSchema("sync_queue", "id", ("type", "status", "timestamp")),
    RecordType.SETTINGS: StoreSchema("settings", "key", (), auto_key=False),
}


@dataclass(frozen=True)
class ByKey:
    """Select the single record with this primary key."""

    key: Union[str, int]


@dataclass(frozen=True)
class ByIndex:
    """Select every record whose indexed field equals ``value``."""

    index: str
    value: Any


@dataclass(frozen=True)
class AllRecords:
    """Select every record of the type."""


Selector = Union[ByKey, ByIndex, AllRecords]

ALL = AllRecords()


class SyncStatus(str, Enum):
    """Lifecycle of a queued offline write."""

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class SyncQueueEntry(BaseModel):
    """A write captured while offline, waiting to be replayed."""

    id: str
    type: str = Field(..., description="Kind of write, e.g. 'children' or 'vaccinations'")
    payload: Any = None
    status: SyncStatus = SyncStatus.PENDING
    timestamp: int = Field(..., description="Epoch milliseconds when the write was queued")
    url: Optional[str] = Field(default=None, description="Backend URL the write targets")
    method: str = "POST"
    error: Optional[str] = None
    attempts: int = 0
    offline: bool = True

    model_config = ConfigDict(use_enum_values=True, extra="ignore")
