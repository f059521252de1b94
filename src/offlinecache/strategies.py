"""
Fetch/Store Strategies

Three policies deciding, for one classified request, whether to answer
from storage or the network and where to store what the network returns:

- ``cache_first``: serve any stored copy, fetch and store on a miss
- ``network_first``: fetch, fall back to a stored copy or the offline page
- ``stale_while_revalidate``: serve the stored copy now, refresh it in the
  background for the next call
"""

import asyncio
import logging
from typing import Optional, Set

from offlinecache.buckets import BucketRegistry
from offlinecache.core.config.models import RoutingConfig
from offlinecache.core.events import (
    CacheHitEvent, CacheMissEvent, EntryStoredEvent, ErrorEvent, EventEmitter
)
from offlinecache.core.events.types import EventType
from offlinecache.core.exceptions import NetworkError, StorageError
from offlinecache.http import DESTINATION_IMAGE, Request, Response, normalize_url
from offlinecache.network import Fetcher
from offlinecache.ranges import is_media_entry, range_response
from offlinecache.storage.base import CacheStorage, Entry


logger = logging.getLogger(__name__)

CACHE_FIRST = "cache_first"
NETWORK_FIRST = "network_first"
STALE_WHILE_REVALIDATE = "stale_while_revalidate"


class StrategyEngine:
    """Applies fetch/store strategies against the bucket storage."""

    def __init__(
        self,
        storage: CacheStorage,
        registry: BucketRegistry,
        fetcher: Fetcher,
        routing: Optional[RoutingConfig] = None,
        events: Optional[EventEmitter] = None
    ):
        self.storage = storage
        self.registry = registry
        self.fetcher = fetcher
        self.routing = routing or RoutingConfig()
        self.events = events
        self.offline_key = normalize_url(self.routing.offline_fallback, self.routing.origin)
        self._revalidations: Set[asyncio.Task] = set()

    @property
    def pending_revalidations(self) -> int:
        return len(self._revalidations)

    async def cache_first(self, request: Request, bucket_name: str) -> Response:
        """
        Serve a stored copy if one exists in any bucket, without freshness checks.

        On a miss the response is fetched and, if 2xx, stored in
        ``bucket_name``. A failed image fetch yields an empty 404 so
        rendering can continue; any other failure propagates.

        Raises:
            NetworkError: If the fetch fails and the request is not an image
        """
        found = await self.storage.locate(request.key)
        if found is not None:
            return await self._serve_hit(request, found[0], found[1], CACHE_FIRST)

        await self._emit(CacheMissEvent(url=request.key, strategy=CACHE_FIRST))
        try:
            response = await self.fetcher.fetch(request)
        except NetworkError as e:
            if request.destination == DESTINATION_IMAGE:
                logger.info(f"Image fetch failed, serving placeholder for {request.url}: {e.message}")
                return Response.empty(404, url=request.url)
            raise

        if response.ok:
            await self._store(bucket_name, request, response)
        return response

    async def network_first(self, request: Request) -> Response:
        """
        Fetch from the network, storing 2xx responses in the runtime bucket.

        On failure the best stored copy is served; navigations with no
        stored copy get the offline fallback entry.

        Raises:
            NetworkError: If the fetch fails and no fallback is stored
        """
        try:
            response = await self.fetcher.fetch(request)
        except NetworkError as e:
            found = await self.storage.locate(request.key)
            if found is None and request.is_navigation:
                found = await self.storage.locate(self.offline_key)
                if found is not None:
                    logger.info(f"Network failed for {request.url}, serving offline fallback")

            if found is not None:
                return await self._serve_hit(request, found[0], found[1], NETWORK_FIRST, allow_range=False)

            await self._emit(CacheMissEvent(url=request.key, strategy=NETWORK_FIRST))
            logger.warning(f"Network failed for {request.url} with no fallback: {e.message}")
            raise

        if response.ok:
            await self._store(self.registry.runtime, request, response)
        return response

    async def stale_while_revalidate(self, request: Request) -> Response:
        """
        Serve a stored copy immediately and refresh it in the background.

        Without a stored copy the call waits for the network. The refreshed
        copy lands in the runtime bucket and is visible from the next call.

        Raises:
            NetworkError: If nothing is stored and the fetch fails
        """
        found = await self.storage.locate(request.key)

        if found is None:
            await self._emit(CacheMissEvent(url=request.key, strategy=STALE_WHILE_REVALIDATE))
            return await self._revalidate(request, swallow_errors=False)

        task = asyncio.create_task(self._revalidate(request, swallow_errors=True))
        self._revalidations.add(task)
        task.add_done_callback(self._revalidations.discard)
        return await self._serve_hit(request, found[0], found[1], STALE_WHILE_REVALIDATE, allow_range=False)

    async def wait_for_revalidation(self) -> None:
        """Wait for outstanding background revalidations."""
        while self._revalidations:
            await asyncio.gather(*list(self._revalidations), return_exceptions=True)

    async def _revalidate(self, request: Request, swallow_errors: bool) -> Optional[Response]:
        try:
            response = await self.fetcher.fetch(request)
        except NetworkError as e:
            if not swallow_errors:
                raise
            logger.debug(f"Revalidation of {request.url} failed: {e.message}")
            await self._emit(ErrorEvent(
                error_type=type(e).__name__,
                error_message=e.message,
                error_context="revalidate",
                url=request.key,
            ))
            return None

        if response.ok:
            await self._store(self.registry.runtime, request, response)
        return response

    async def _serve_hit(
        self,
        request: Request,
        bucket_name: str,
        entry: Entry,
        strategy: str,
        allow_range: bool = True
    ) -> Response:
        partial = None
        range_header = request.headers.get('range')
        if allow_range and range_header and is_media_entry(request, entry, self.routing.media_extensions):
            partial = range_response(entry, range_header)

        await self._emit(CacheHitEvent(
            url=request.key,
            bucket=bucket_name,
            strategy=strategy,
            partial=partial is not None,
        ))
        return partial if partial is not None else entry.to_response()

    async def _store(self, bucket_name: str, request: Request, response: Response) -> None:
        """Store a clone; write failures are logged and the response still served."""
        try:
            bucket = await self.storage.open(bucket_name)
            entry = await bucket.put(request.key, response.clone())
        except StorageError as e:
            logger.warning(f"Failed to store {request.url} in {bucket_name}: {e.message}")
            await self._emit(ErrorEvent(
                error_type=type(e).__name__,
                error_message=e.message,
                error_context="store",
                url=request.key,
                bucket=bucket_name,
            ))
            return

        await self._emit(EntryStoredEvent(
            url=request.key,
            bucket=bucket_name,
            size=entry.size,
            insertion_order=entry.insertion_order,
        ))

    async def _emit(self, event: EventType) -> None:
        if self.events is not None:
            await self.events.emit_async(event)
