"""Shared test configuration with lightweight fixtures backed by temporary files."""

import json
from collections.abc import AsyncGenerator
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from immunotracker.cache.tiers import CacheStorage
from immunotracker.config.settings import TrackerSettings, reset_settings
from immunotracker.network.router import FetchRouter
from immunotracker.network.transport import HTTPTransport
from immunotracker.store.database import OfflineStore
from immunotracker.store.queue import SyncQueue
from immunotracker.sync.coordinator import SyncCoordinator
from immunotracker.sync.notifications import ClientBroadcaster, MessageLog

ORIGIN = "http://localhost:8000"


class FakeBackend:
    """Request handler for ``httpx.MockTransport`` with canned responses.

    Responses are registered per ``(method, path)``; a full URL may be used
    instead of a path for cross-origin hosts. Unregistered requests get a 404.
    Setting ``offline`` makes every request fail with a connection error.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Tuple[int, bytes, Dict[str, str]]] = {}
        self.requests: List[httpx.Request] = []
        self.offline = False
        self.failing_paths: set = set()

    def add(
        self,
        path: str,
        status: int = 200,
        json_data: Any = None,
        content: bytes = b"",
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        body = json.dumps(json_data).encode("utf-8") if json_data is not None else content
        merged = {"content-type": "application/json"} if json_data is not None else {}
        merged.update(headers or {})
        self.routes[(method.upper(), path)] = (status, body, merged)

    def requests_to(self, path: str, method: Optional[str] = None) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.path == path and (method is None or r.method == method.upper())
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline or request.url.path in self.failing_paths:
            raise httpx.ConnectError("Network unreachable", request=request)

        route = self.routes.get((request.method, str(request.url))) or self.routes.get(
            (request.method, request.url.path)
        )
        if route is None:
            return httpx.Response(404, content=b"Not Found")

        status, body, headers = route
        return httpx.Response(status, content=body, headers=headers)


@pytest.fixture(autouse=True)
def _reset_global_settings():
    """Keep the lazily created global settings out of other tests."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def test_settings(tmp_path) -> TrackerSettings:
    """Real settings pointing at a temporary data directory."""
    return TrackerSettings(
        origin=ORIGIN,
        api_base_url=f"{ORIGIN}/api",
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def transport(test_settings, backend) -> AsyncGenerator[HTTPTransport, None]:
    """HTTP transport whose network is the fake backend."""
    http = HTTPTransport(test_settings, transport=httpx.MockTransport(backend))
    yield http
    await http.close()


@pytest.fixture
def store(test_settings) -> OfflineStore:
    return OfflineStore(test_settings.database_file)


@pytest.fixture
def queue(store) -> SyncQueue:
    return SyncQueue(store)


@pytest.fixture
def cache(test_settings) -> CacheStorage:
    return CacheStorage(test_settings.cache_file, base_url=test_settings.origin)


@pytest.fixture
def message_log() -> MessageLog:
    return MessageLog()


@pytest.fixture
def broadcaster(message_log) -> ClientBroadcaster:
    clients = ClientBroadcaster()
    clients.register(message_log)
    return clients


@pytest.fixture
def router(test_settings, cache, transport, queue, broadcaster) -> FetchRouter:
    return FetchRouter(test_settings, cache, transport, queue=queue, broadcaster=broadcaster)


@pytest.fixture
def coordinator(test_settings, router, queue, broadcaster) -> SyncCoordinator:
    return SyncCoordinator(test_settings, router, queue, broadcaster=broadcaster)
