"""
Cache Engine

Wires storage, fetcher, registry, strategies, router, control protocol
and lifecycle into one object a hosting application drives:

    engine = CacheEngine(config)
    await engine.start()
    response = await engine.intercept(Request(url, destination="image"))
    reply = await engine.post_message({"type": "INFO"})
    await engine.close()
"""

import logging
from typing import Any, Dict, Optional, Union

from offlinecache.buckets import BucketRegistry
from offlinecache.core.config.models import AppConfig
from offlinecache.core.events import EventEmitter
from offlinecache.http import Request, Response
from offlinecache.lifecycle import InstallReport, LifecycleManager
from offlinecache.network import AiohttpFetcher, Fetcher
from offlinecache.protocol import ControlClient, ControlMessage, ControlProtocolHandler
from offlinecache.router import RequestRouter
from offlinecache.storage import CacheStorage, create_storage
from offlinecache.strategies import StrategyEngine


logger = logging.getLogger(__name__)


class CacheEngine:
    """Client-side cache orchestration engine."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        storage: Optional[CacheStorage] = None,
        fetcher: Optional[Fetcher] = None,
        events: Optional[EventEmitter] = None
    ):
        """
        Initialize the engine.

        Args:
            config: Application configuration, defaults if omitted
            storage: Bucket storage, built from ``config.storage`` if omitted
            fetcher: Network fetcher, an ``AiohttpFetcher`` if omitted
            events: Event emitter observers subscribe to
        """
        self.config = config or AppConfig()
        self.storage = storage or create_storage(self.config.storage)
        self.fetcher = fetcher or AiohttpFetcher(self.config.network)
        self.events = events or EventEmitter()

        self.registry = BucketRegistry(self.config.buckets)
        self.lifecycle = LifecycleManager(
            self.config, self.storage, self.registry, self.fetcher, self.events
        )
        self.strategies = StrategyEngine(
            self.storage, self.registry, self.fetcher, self.config.routing, self.events
        )
        self.router = RequestRouter(
            self.registry, self.strategies, self.config.routing, self.events,
            is_controlling=lambda: self.lifecycle.is_controlling
        )
        self.protocol = ControlProtocolHandler(
            self.storage, self.registry, self.fetcher, self.config.routing.origin,
            self.events, precache=self.lifecycle.precache
        )
        self.client = ControlClient(self.protocol)

    @property
    def state(self):
        return self.lifecycle.state

    async def start(self, periodic_eviction: Optional[bool] = None) -> InstallReport:
        """
        Install, then activate straight away when ``skip_waiting`` is set.

        The background eviction sweep starts whenever ``eviction.enabled``
        is set.

        Args:
            periodic_eviction: Override ``eviction.enabled`` for this engine

        Returns:
            The install report
        """
        report = await self.lifecycle.install()
        if self.config.skip_waiting:
            await self.activate()
        if periodic_eviction is None:
            periodic_eviction = self.config.eviction.enabled
        if periodic_eviction:
            self.lifecycle.start_periodic_eviction(force=True)
        return report

    async def activate(self):
        return await self.lifecycle.activate()

    async def intercept(self, request: Request) -> Optional[Response]:
        """
        Answer a request through the router.

        Returns:
            The response, or None when the request is not intercepted

        Raises:
            NetworkError: If the network failed and no fallback exists
        """
        return await self.router.handle(request)

    async def post_message(
        self,
        message: Union[ControlMessage, Dict[str, Any]],
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Send a control message and wait for its reply.

        Raises:
            CallerTimeoutError: If ``timeout`` elapses before the reply
        """
        return await self.client.call(message, timeout=timeout)

    async def evict(self):
        return await self.lifecycle.evict()

    async def close(self) -> None:
        """Stop background work and release network and storage resources."""
        await self.lifecycle.stop()
        await self.strategies.wait_for_revalidation()
        await self.client.drain()
        await self.events.drain()
        await self.fetcher.close()
        await self.storage.close()
        logger.debug("Engine closed")

    async def __aenter__(self) -> 'CacheEngine':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
