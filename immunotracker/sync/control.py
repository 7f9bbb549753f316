"""Request/response command channel from the application to the sync layer."""

import logging
from typing import Any, Dict, Mapping, Optional

from ..cache.tiers import CacheStorage
from ..utils.exceptions import TrackerError
from .coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

CACHE_DATA = "CACHE_DATA"
GET_CACHED_DATA = "GET_CACHED_DATA"
CLEAR_CACHE = "CLEAR_CACHE"
REGISTER_SYNC = "REGISTER_SYNC"
GET_SYNC_STATUS = "GET_SYNC_STATUS"

NOT_FOUND = "Not found"


def success(data: Any = None) -> Dict[str, Any]:
    envelope: Dict[str, Any] = {"success": True}
    if data is not None:
        envelope["data"] = data
    return envelope


def failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


class ControlChannel:
    """Answers application commands with ``{success, data}`` or ``{success, error}``.

    Messages are mappings of the form ``{"type": ..., "data": {...}}``. Fields
    may also be given at the top level of the message.
    """

    def __init__(self, coordinator: SyncCoordinator, cache: Optional[CacheStorage] = None):
        self.coordinator = coordinator
        self.router = coordinator.router
        self.cache = cache or coordinator.router.cache

    @staticmethod
    def _field(message: Mapping[str, Any], name: str) -> Any:
        data = message.get("data")
        if isinstance(data, Mapping) and name in data:
            return data[name]
        return message.get(name)

    async def handle(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        """Dispatch one command and wrap its outcome in an envelope."""
        if not isinstance(message, Mapping):
            return failure("Message must be a mapping")

        message_type = message.get("type")
        logger.debug(f"Control message received: {message_type}")

        handlers = {
            CACHE_DATA: self._cache_data,
            GET_CACHED_DATA: self._get_cached_data,
            CLEAR_CACHE: self._clear_cache,
            REGISTER_SYNC: self._register_sync,
            GET_SYNC_STATUS: self._get_sync_status,
        }
        handler = handlers.get(message_type)  # type: ignore[arg-type]
        if handler is None:
            logger.info(f"Unknown message type: {message_type}")
            return failure(f"Unknown message type: {message_type}")

        try:
            return await handler(message)
        except TrackerError as e:
            logger.warning(f"{message_type} failed: {e.message}")
            return failure(e.message)

    async def _cache_data(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        key = self._field(message, "key")
        value = self._field(message, "value")
        tier = await self.router.offline_tier()

        if key and value is not None:
            await tier.put_json(key, value)
            return success()
        data = message.get("data")
        if isinstance(data, Mapping) and data.get("type") == "clear":
            removed = await tier.clear()
            return success({"cleared": removed})
        return failure("CACHE_DATA requires key and value, or type 'clear'")

    async def _get_cached_data(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        key = self._field(message, "key")
        if not key:
            return failure(NOT_FOUND)

        tier = await self.router.offline_tier()
        value = await tier.match_json(key)
        return success(value) if value is not None else failure(NOT_FOUND)

    async def _clear_cache(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        names = await self.cache.keys()
        for name in names:
            await self.cache.delete(name)
        logger.info("All caches cleared")
        return success({"cleared": names})

    async def _register_sync(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        tag = self._field(message, "tag")
        if not tag:
            return failure("REGISTER_SYNC requires a tag")
        accepted = await self.coordinator.register_sync(str(tag))
        return success({"tag": tag}) if accepted else failure(f"Could not register {tag}")

    async def _get_sync_status(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        status = await self.coordinator.get_sync_status()
        return success(status.model_dump(by_alias=True))
