"""
Request Router

Classifies every intercepted request into exactly one (strategy, bucket)
route, first matching rule wins:

1. Non-GET requests pass through
2. Cross-origin requests outside the allow-list pass through
3. Navigations use network-first
4. Styles, scripts and fonts use cache-first on the app bucket
5. Images use cache-first on the asset bucket
6. Allow-listed cross-origin requests use stale-while-revalidate
7. Everything else uses cache-first on the runtime bucket
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from offlinecache.buckets import BucketRegistry
from offlinecache.core.config.models import RoutingConfig
from offlinecache.core.events import EventEmitter, RequestRoutedEvent
from offlinecache.http import (
    DESTINATION_FONT, DESTINATION_IMAGE, DESTINATION_SCRIPT, DESTINATION_STYLE,
    Request, Response
)
from offlinecache.strategies import (
    CACHE_FIRST, NETWORK_FIRST, STALE_WHILE_REVALIDATE, StrategyEngine
)


logger = logging.getLogger(__name__)

APP_DESTINATIONS = frozenset({DESTINATION_STYLE, DESTINATION_SCRIPT, DESTINATION_FONT})


@dataclass(frozen=True)
class Route:
    """Where a request goes: strategy, target bucket and the rule that matched."""
    strategy: str
    bucket: str
    rule: str


class RequestRouter:
    """Routes intercepted requests to fetch/store strategies."""

    def __init__(
        self,
        registry: BucketRegistry,
        strategies: StrategyEngine,
        routing: Optional[RoutingConfig] = None,
        events: Optional[EventEmitter] = None,
        is_controlling: Optional[Callable[[], bool]] = None
    ):
        self.registry = registry
        self.strategies = strategies
        self.routing = routing or RoutingConfig()
        self.events = events
        self._is_controlling = is_controlling or (lambda: True)

    def is_allowed_origin(self, request: Request) -> bool:
        """Allow-list entries match anywhere in the request hostname."""
        hostname = request.hostname
        return any(allowed.lower() in hostname for allowed in self.routing.allowed_origins)

    def is_cross_origin(self, request: Request) -> bool:
        return request.origin != self.routing.origin

    def classify(self, request: Request) -> Optional[Route]:
        """
        Classify a request.

        Args:
            request: Intercepted request

        Returns:
            The matching route, or None if the request is not intercepted
        """
        if request.method != "GET":
            return None

        cross_origin = self.is_cross_origin(request)
        allowed = cross_origin and self.is_allowed_origin(request)
        if cross_origin and not allowed:
            return None

        if request.is_navigation:
            return Route(NETWORK_FIRST, self.registry.runtime, "navigation")

        if request.destination in APP_DESTINATIONS:
            return Route(CACHE_FIRST, self.registry.app, "app-resource")

        if request.destination == DESTINATION_IMAGE:
            return Route(CACHE_FIRST, self.registry.assets, "image")

        if allowed:
            return Route(STALE_WHILE_REVALIDATE, self.registry.runtime, "allowed-cross-origin")

        return Route(CACHE_FIRST, self.registry.runtime, "default")

    async def handle(self, request: Request) -> Optional[Response]:
        """
        Answer an intercepted request.

        Returns:
            The response, or None when the caller should fetch on its own

        Raises:
            NetworkError: If the chosen strategy has no fallback for a failed fetch
        """
        if not self._is_controlling():
            logger.debug(f"Not controlling yet, passing through {request.url}")
            return None

        route = self.classify(request)
        if self.events is not None:
            await self.events.emit_async(RequestRoutedEvent(
                url=request.key,
                strategy=route.strategy if route else "",
                bucket=route.bucket if route else "",
                rule=route.rule if route else "",
                intercepted=route is not None,
            ))

        if route is None:
            logger.debug(f"Passing through {request.method} {request.url}")
            return None

        logger.debug(f"Routing {request.url} via {route.rule} to {route.strategy}({route.bucket})")

        if route.strategy == NETWORK_FIRST:
            return await self.strategies.network_first(request)
        if route.strategy == STALE_WHILE_REVALIDATE:
            return await self.strategies.stale_while_revalidate(request)
        return await self.strategies.cache_first(request, route.bucket)
