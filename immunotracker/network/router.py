"""Per-request routing of fetches to cache and network strategies."""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional, Set
from urllib.parse import urljoin, urlsplit

from ..cache.tiers import CacheStorage, CacheTier
from ..sync.notifications import ACTIVATED, ClientBroadcaster
from ..utils.exceptions import CacheError, TrackerError, TransientNetworkError
from ..utils.helpers import epoch_millis
from .models import STATIC_DESTINATIONS, FetchRequest, FetchResponse
from .transport import HTTPTransport

if TYPE_CHECKING:
    from ..store.queue import SyncQueue

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last-sync"
HTTP_SCHEMES = ("http", "https")


class RouteKind(str, Enum):
    """Strategy a request is dispatched to."""

    PASSTHROUGH = "passthrough"
    API = "api"
    STATIC = "static"
    NAVIGATION = "navigation"
    DEFAULT = "default"


def offline_response(url: str = "") -> FetchResponse:
    """Structured 503 returned when an API read has neither network nor cache."""
    return FetchResponse.json_response(
        {"error": "Network error", "offline": True, "timestamp": epoch_millis()},
        status=503,
        url=url,
    )


class FetchRouter:
    """Classifies outgoing requests and serves them from cache tiers or the network.

    Until :meth:`activate` has run the router does not intercept anything and
    every request goes straight to the network.
    """

    def __init__(
        self,
        settings: Any,
        cache: CacheStorage,
        transport: HTTPTransport,
        queue: Optional["SyncQueue"] = None,
        broadcaster: Optional[ClientBroadcaster] = None,
    ):
        """Initialize fetch router.

        Args:
            settings: Application settings
            cache: Cache storage holding the tiers
            transport: Network transport
            queue: Sync queue for writes made while offline
            broadcaster: Client notification channel
        """
        self.settings = settings
        self.cache = cache
        self.transport = transport
        self.queue = queue
        self.broadcaster = broadcaster
        self.active = False

        origin = urlsplit(settings.origin)
        self._origin = (origin.scheme, origin.netloc)
        base = settings.origin.rstrip("/") + "/"
        self._precache_urls = {urljoin(base, asset) for asset in settings.precache_assets}
        self._background: Set["asyncio.Task[None]"] = set()

    # Tiers

    async def static_tier(self) -> CacheTier:
        return await self.cache.open(self.settings.static_cache_name)

    async def api_tier(self) -> CacheTier:
        return await self.cache.open(self.settings.api_cache_name)

    async def offline_tier(self) -> CacheTier:
        return await self.cache.open(self.settings.offline_cache_name)

    async def update_last_sync(self) -> int:
        """Stamp the offline tier's last-sync marker with the current time."""
        now = epoch_millis()
        tier = await self.offline_tier()
        await tier.put_json(LAST_SYNC_KEY, now)
        return now

    async def last_sync(self) -> Optional[int]:
        tier = await self.offline_tier()
        value = await tier.match_json(LAST_SYNC_KEY)
        return int(value) if value is not None else None

    # Lifecycle

    async def install(self) -> int:
        """Precache the application shell and seed the last-sync marker.

        All assets are fetched before any is stored, so a failed install
        leaves the static tier untouched.

        Returns:
            Number of assets cached

        Raises:
            CacheError: If any asset could not be fetched successfully
        """
        logger.info(f"Installing {self.settings.static_cache_name}")
        fetched = []
        for url in sorted(self._precache_urls):
            try:
                response = await self.transport.fetch(FetchRequest(url=url))
            except TransientNetworkError as e:
                raise CacheError(f"Precache failed for {url}: {e.message}") from e
            if not response.ok:
                raise CacheError(f"Precache failed for {url}: HTTP {response.status}")
            fetched.append((url, response))

        tier = await self.static_tier()
        for url, response in fetched:
            await tier.put(url, response)

        await self.update_last_sync()
        logger.info(f"Installation complete: {len(fetched)} assets cached")
        return len(fetched)

    async def activate(self) -> List[str]:
        """Drop tiers from previous generations, then start intercepting requests.

        Returns:
            Names of the tiers deleted
        """
        current = set(self.settings.cache_tier_names)
        deleted = []
        for name in await self.cache.keys():
            if name not in current:
                logger.info(f"Deleting old cache tier: {name}")
                await self.cache.delete(name)
                deleted.append(name)

        self.active = True
        logger.info(f"Activated version {self.settings.app_version}")

        if self.broadcaster is not None:
            await self.broadcaster.broadcast(ACTIVATED, {"version": self.settings.app_version})
        return deleted

    # Classification

    def _is_backend_host(self, host: str) -> bool:
        return any(host == h or host.endswith("." + h) for h in self.settings.backend_hosts)

    def classify(self, request: FetchRequest) -> RouteKind:
        """Pick the strategy for a request, first match wins."""
        parts = urlsplit(request.url)
        if not parts.scheme and not parts.netloc:
            parts = urlsplit(urljoin(self.settings.origin.rstrip("/") + "/", request.url))

        if parts.scheme not in HTTP_SCHEMES:
            return RouteKind.PASSTHROUGH

        host = parts.hostname or ""
        same_origin = (parts.scheme, parts.netloc) == self._origin
        backend = self._is_backend_host(host)
        if not same_origin and not backend:
            return RouteKind.PASSTHROUGH

        if backend or any(marker in parts.path for marker in self.settings.api_path_markers):
            return RouteKind.API

        absolute = parts._replace(fragment="").geturl()
        if absolute in self._precache_urls or request.destination in STATIC_DESTINATIONS:
            return RouteKind.STATIC

        if request.mode == "navigate":
            return RouteKind.NAVIGATION

        return RouteKind.DEFAULT

    # Dispatch

    async def handle(self, request: FetchRequest) -> FetchResponse:
        """Serve a request according to its route.

        Raises:
            TransientNetworkError: For passthrough requests, and for static or
                default requests when neither network nor cache can serve them
        """
        if not self.active:
            return await self.transport.fetch(request)

        kind = self.classify(request)
        logger.debug(f"{request.method} {request.url} -> {kind.value}")

        if kind == RouteKind.PASSTHROUGH:
            return await self.transport.fetch(request)
        if kind == RouteKind.API:
            if request.is_read:
                return await self._handle_api_read(request)
            return await self._handle_api_write(request)
        if kind == RouteKind.STATIC:
            return await self._handle_static(request)
        if kind == RouteKind.NAVIGATION:
            return await self._handle_navigation(request)
        return await self._handle_default(request)

    async def _cache_put(
        self, tier: CacheTier, request: FetchRequest, response: FetchResponse
    ) -> None:
        try:
            await tier.put(request, response)
        except CacheError as e:
            logger.warning(f"Could not cache {request.url} in {tier.name}: {e.message}")

    async def _cache_match(self, tier: CacheTier, key: Any) -> Optional[FetchResponse]:
        try:
            return await tier.match(key)
        except CacheError as e:
            logger.warning(f"Cache lookup failed in {tier.name}: {e.message}")
            return None

    async def _handle_api_read(self, request: FetchRequest) -> FetchResponse:
        """Network first; cache copy on failure; structured 503 as a last resort."""
        tier = await self.api_tier()

        try:
            response = await self.transport.fetch(request)
        except TransientNetworkError:
            logger.info(f"Network failed for {request.url}, trying cache")
            cached = await self._cache_match(tier, request)
            return cached if cached is not None else offline_response(request.url)

        if response.ok:
            await self._cache_put(tier, request, response)
            try:
                await self.update_last_sync()
            except CacheError as e:
                logger.warning(f"Could not update last-sync marker: {e.message}")
            return response

        cached = await self._cache_match(tier, request)
        return cached if cached is not None else response

    @staticmethod
    def _write_type(request: FetchRequest) -> str:
        segments = [s for s in request.path.split("/") if s]
        if "api" in segments and segments.index("api") + 1 < len(segments):
            return segments[segments.index("api") + 1]
        return segments[-1] if segments else "request"

    async def _handle_api_write(self, request: FetchRequest) -> FetchResponse:
        """Send a write; queue it for later replay if the network is unreachable."""
        try:
            return await self.transport.fetch(request)
        except TransientNetworkError:
            if self.queue is None:
                return offline_response(request.url)

        try:
            payload = request.json_body()
        except ValueError:
            payload = request.body.decode("utf-8", errors="replace") if request.body else None

        entry = await self.queue.enqueue(
            self._write_type(request), payload, url=request.url, method=request.method
        )
        return FetchResponse.json_response(
            {"queued": True, "offline": True, "id": entry.id, "timestamp": entry.timestamp},
            status=202,
            url=request.url,
        )

    async def _handle_static(self, request: FetchRequest) -> FetchResponse:
        """Cache first with a background refresh; shell fallback for documents."""
        tier = await self.static_tier()

        cached = await self._cache_match(tier, request)
        if cached is not None:
            self._schedule_refresh(request, tier)
            return cached

        try:
            response = await self.transport.fetch(request)
        except TransientNetworkError:
            if request.destination == "document":
                shell = await self._cache_match(tier, self.settings.shell_url)
                if shell is not None:
                    return shell
            raise

        if response.ok:
            await self._cache_put(tier, request, response)
        return response

    async def _handle_navigation(self, request: FetchRequest) -> FetchResponse:
        """Network first; then the cached page; then the application shell."""
        tier = await self.static_tier()

        try:
            network_response = await self.transport.fetch(request)
        except TransientNetworkError:
            logger.info(f"Network failed for navigation to {request.url}")
            fallback = await self._page_or_shell(tier, request)
            if fallback is None:
                raise
            return fallback

        if network_response.ok:
            await self._cache_put(tier, request, network_response)
            return network_response

        fallback = await self._page_or_shell(tier, request)
        return fallback if fallback is not None else network_response

    async def _page_or_shell(
        self, tier: CacheTier, request: FetchRequest
    ) -> Optional[FetchResponse]:
        cached = await self._cache_match(tier, request)
        if cached is not None:
            return cached
        return await self._cache_match(tier, self.settings.shell_url)

    async def _handle_default(self, request: FetchRequest) -> FetchResponse:
        """Best-effort network with the static tier as backup."""
        try:
            return await self.transport.fetch(request)
        except TransientNetworkError:
            tier = await self.static_tier()
            cached = await self._cache_match(tier, request)
            if cached is not None:
                return cached
            raise

    # Background refresh

    def _schedule_refresh(self, request: FetchRequest, tier: CacheTier) -> None:
        task = asyncio.create_task(self._refresh_in_background(request, tier))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _refresh_in_background(self, request: FetchRequest, tier: CacheTier) -> None:
        try:
            response = await self.transport.fetch(request)
            if response.ok:
                await tier.put(request, response)
        except TrackerError as e:
            logger.debug(f"Background refresh of {request.url} failed: {e.message}")

    async def wait_for_background(self) -> None:
        """Wait for outstanding background refreshes (used at shutdown and in tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
