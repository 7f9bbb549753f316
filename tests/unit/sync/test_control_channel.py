"""Unit tests for immunotracker.sync.control module."""

from datetime import datetime

import pytest

from immunotracker.sync.control import ControlChannel, failure, success
from immunotracker.sync.coordinator import SYNC_OFFLINE_DATA, SYNC_STATS
from immunotracker.sync.notifications import SYNC_COMPLETED


@pytest.fixture
def channel(coordinator) -> ControlChannel:
    return ControlChannel(coordinator)


class TestEnvelopes:
    def test_success_without_data(self):
        assert success() == {"success": True}

    def test_success_with_data(self):
        assert success({"a": 1}) == {"success": True, "data": {"a": 1}}

    def test_failure(self):
        assert failure("boom") == {"success": False, "error": "boom"}


class TestControlChannel:
    """Tests for command dispatch."""

    @pytest.mark.asyncio
    async def test_cache_then_get(self, channel):
        stored = await channel.handle(
            {"type": "CACHE_DATA", "data": {"key": "draft-child", "value": {"name": "Amina"}}}
        )
        fetched = await channel.handle({"type": "GET_CACHED_DATA", "data": {"key": "draft-child"}})

        assert stored == {"success": True}
        assert fetched == {"success": True, "data": {"name": "Amina"}}

    @pytest.mark.asyncio
    async def test_get_missing_key(self, channel):
        response = await channel.handle({"type": "GET_CACHED_DATA", "key": "nothing"})
        assert response == {"success": False, "error": "Not found"}

    @pytest.mark.asyncio
    async def test_cache_data_clear(self, channel):
        await channel.handle({"type": "CACHE_DATA", "key": "a", "value": 1})
        await channel.handle({"type": "CACHE_DATA", "key": "b", "value": 2})

        response = await channel.handle({"type": "CACHE_DATA", "data": {"type": "clear"}})

        assert response == {"success": True, "data": {"cleared": 2}}
        assert (await channel.handle({"type": "GET_CACHED_DATA", "key": "a"}))["success"] is False

    @pytest.mark.asyncio
    async def test_cache_data_unserializable_value(self, channel):
        response = await channel.handle(
            {"type": "CACHE_DATA", "data": {"key": "k", "value": {"at": datetime(2025, 1, 1)}}}
        )

        assert response["success"] is False
        assert "not JSON serializable" in response["error"]

    @pytest.mark.asyncio
    async def test_cache_data_without_key(self, channel):
        response = await channel.handle({"type": "CACHE_DATA", "data": {"value": 1}})
        assert response["success"] is False

    @pytest.mark.asyncio
    async def test_clear_cache_drops_every_tier(self, channel, router, cache):
        await router.static_tier()
        await router.api_tier()

        response = await channel.handle({"type": "CLEAR_CACHE"})

        assert response["success"] is True
        assert set(response["data"]["cleared"]) == {
            router.settings.static_cache_name,
            router.settings.api_cache_name,
        }
        assert await cache.keys() == []

    @pytest.mark.asyncio
    async def test_register_sync_runs_when_online(self, channel, message_log):
        response = await channel.handle(
            {"type": "REGISTER_SYNC", "data": {"tag": SYNC_OFFLINE_DATA}}
        )

        assert response == {"success": True, "data": {"tag": SYNC_OFFLINE_DATA}}
        assert len(message_log.of_type(SYNC_COMPLETED)) == 1

    @pytest.mark.asyncio
    async def test_register_sync_held_while_offline(self, channel, coordinator):
        coordinator.connectivity_lost()

        await channel.handle({"type": "REGISTER_SYNC", "tag": SYNC_STATS})

        assert coordinator.registered_tags == [SYNC_STATS]

    @pytest.mark.asyncio
    async def test_register_sync_requires_tag(self, channel):
        response = await channel.handle({"type": "REGISTER_SYNC", "data": {}})
        assert response["success"] is False

    @pytest.mark.asyncio
    async def test_get_sync_status(self, channel, queue):
        await queue.enqueue("children", {})

        response = await channel.handle({"type": "GET_SYNC_STATUS"})

        assert response == {
            "success": True,
            "data": {"lastSync": None, "pendingSyncs": 1, "failedSyncs": 0, "isOnline": True},
        }

    @pytest.mark.asyncio
    async def test_unknown_type(self, channel):
        response = await channel.handle({"type": "PURGE_EVERYTHING"})
        assert response == {"success": False, "error": "Unknown message type: PURGE_EVERYTHING"}

    @pytest.mark.asyncio
    async def test_non_mapping_message(self, channel):
        response = await channel.handle(["CLEAR_CACHE"])
        assert response["success"] is False
