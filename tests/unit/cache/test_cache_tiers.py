"""Unit tests for immunotracker.cache.tiers module."""

import pytest

from immunotracker.cache.tiers import CacheStorage
from immunotracker.network.models import FetchRequest, FetchResponse
from immunotracker.utils.exceptions import CacheError

ORIGIN = "http://localhost:8000"


class TestCacheStorage:
    """Tests for tier bookkeeping."""

    @pytest.mark.asyncio
    async def test_open_creates_tier_once(self, cache):
        await cache.open("static-v1")
        await cache.open("static-v1")
        await cache.open("api-cache-v1")

        assert await cache.keys() == ["static-v1", "api-cache-v1"]
        assert await cache.has("static-v1") is True
        assert await cache.has("static-v0") is False

    @pytest.mark.asyncio
    async def test_delete_removes_entries(self, cache):
        tier = await cache.open("static-v1")
        await tier.put("/index.html", FetchResponse(body=b"<html>"))

        assert await cache.delete("static-v1") is True
        assert await cache.delete("static-v1") is False

        reopened = await cache.open("static-v1")
        assert await reopened.keys() == []

    @pytest.mark.asyncio
    async def test_match_searches_every_tier(self, cache):
        tier = await cache.open("api-cache-v1")
        await tier.put("/api/children", FetchResponse(body=b"[]"))

        assert (await cache.match("/api/children")).body == b"[]"
        assert await cache.match("/api/facilities") is None

    def test_relative_keys_resolve_against_origin(self, cache):
        assert cache.resolve_key("/index.html") == f"{ORIGIN}/index.html"
        assert cache.resolve_key(f"{ORIGIN}/index.html#top") == f"{ORIGIN}/index.html"
        assert cache.resolve_key(FetchRequest(url=f"{ORIGIN}/a.css")) == f"{ORIGIN}/a.css"

    def test_without_origin_keys_are_kept(self, tmp_path):
        storage = CacheStorage(tmp_path / "cache.db")
        assert storage.resolve_key("last-sync") == "last-sync"

    @pytest.mark.asyncio
    async def test_unusable_database_raises_cache_error(self, tmp_path):
        database_path = tmp_path / "occupied"
        database_path.mkdir()

        with pytest.raises(CacheError):
            await CacheStorage(database_path).keys()


class TestCacheTier:
    """Tests for stored responses within one tier."""

    @pytest.mark.asyncio
    async def test_put_and_match(self, cache):
        tier = await cache.open("static-v1")
        response = FetchResponse(
            url=f"{ORIGIN}/app.js",
            status=200,
            headers={"content-type": "text/javascript"},
            body=b"console.log(1)",
        )

        await tier.put(FetchRequest(url=f"{ORIGIN}/app.js"), response)
        cached = await tier.match("/app.js")

        assert cached.body == b"console.log(1)"
        assert cached.headers == {"content-type": "text/javascript"}
        assert cached.from_cache is True
        assert cached.cached_at is not None

    @pytest.mark.asyncio
    async def test_put_replaces(self, cache):
        tier = await cache.open("static-v1")
        await tier.put("/index.html", FetchResponse(body=b"old"))
        await tier.put("/index.html", FetchResponse(body=b"new"))

        assert (await tier.match("/index.html")).body == b"new"
        assert await tier.keys() == [f"{ORIGIN}/index.html"]

    @pytest.mark.asyncio
    async def test_tiers_are_isolated(self, cache):
        static = await cache.open("static-v1")
        api = await cache.open("api-cache-v1")
        await static.put("/index.html", FetchResponse(body=b"<html>"))

        assert await api.match("/index.html") is None

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, cache):
        tier = await cache.open("offline-data-v1")
        await tier.put("/a", FetchResponse(body=b"a"))
        await tier.put("/b", FetchResponse(body=b"b"))

        assert await tier.delete("/a") is True
        assert await tier.delete("/a") is False
        assert await tier.clear() == 1
        assert await cache.has("offline-data-v1") is True

    @pytest.mark.asyncio
    async def test_json_values(self, cache):
        tier = await cache.open("offline-data-v1")
        await tier.put_json("last-sync", 1717000000000)
        await tier.put_json("children-snapshot", [{"id": "c1"}])

        assert await tier.match_json("last-sync") == 1717000000000
        assert await tier.match_json("children-snapshot") == [{"id": "c1"}]
        assert await tier.match_json("missing") is None

    @pytest.mark.asyncio
    async def test_non_json_value_raises(self, cache):
        tier = await cache.open("offline-data-v1")
        await tier.put("broken", FetchResponse(body=b"<html>"))

        with pytest.raises(CacheError):
            await tier.match_json("broken")

    @pytest.mark.asyncio
    async def test_unserializable_value_raises(self, cache):
        tier = await cache.open("offline-data-v1")

        with pytest.raises(CacheError):
            await tier.put_json("draft", {"at": object()})
        assert await tier.keys() == []
