"""
Test Configuration and Fixtures

Shared fixtures for the test suite: a scripted network fetcher, in-memory
storage, a small application configuration and engines built from them.
"""

import asyncio
from typing import Dict, List, Optional, Union

import pytest

from offlinecache.buckets import BucketRegistry
from offlinecache.core.config.models import (
    AppConfig, EvictionConfig, PrecacheConfig, RoutingConfig
)
from offlinecache.core.events import EventEmitter
from offlinecache.core.exceptions import NetworkError
from offlinecache.engine import CacheEngine
from offlinecache.http import Headers, Request, Response, normalize_url
from offlinecache.network import Fetcher
from offlinecache.storage.memory import MemoryCacheStorage


ORIGIN = "https://app.test"


def make_response(
    body: Union[bytes, str] = b"ok",
    status: int = 200,
    content_type: str = "text/plain",
    headers: Optional[Dict[str, str]] = None,
    url: str = ""
) -> Response:
    """Build a response with a Content-Type header."""
    if isinstance(body, str):
        body = body.encode('utf-8')
    all_headers = Headers({'Content-Type': content_type})
    for name, value in (headers or {}).items():
        all_headers[name] = value
    return Response(status=status, body=body, headers=all_headers, url=url)


class FakeFetcher(Fetcher):
    """
    Scripted network.

    Known URLs return their scripted response or raise their scripted
    error; unknown URLs return 404. ``offline`` makes every fetch fail.
    """

    def __init__(self, origin: str = ORIGIN):
        self.origin = origin
        self.routes: Dict[str, Union[Response, Exception]] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[Request] = []
        self.offline = False
        self.closed = False

    def _key(self, url: str) -> str:
        return normalize_url(url, self.origin)

    def add(self, url: str, body: Union[bytes, str] = b"ok", status: int = 200,
            content_type: str = "text/plain", headers: Optional[Dict[str, str]] = None) -> None:
        key = self._key(url)
        self.routes[key] = make_response(body, status, content_type, headers, url=key)

    def fail(self, url: str, message: str = "Failed to fetch") -> None:
        key = self._key(url)
        self.routes[key] = NetworkError(message, url=key)

    def block(self, url: str) -> asyncio.Event:
        """Hold fetches of ``url`` until the returned event is set."""
        gate = asyncio.Event()
        self.gates[self._key(url)] = gate
        return gate

    def count(self, url: str) -> int:
        key = self._key(url)
        return sum(1 for request in self.calls if request.key == key)

    async def fetch(self, request: Request) -> Response:
        self.calls.append(request)
        gate = self.gates.get(request.key)
        if gate is not None:
            await gate.wait()

        if self.offline:
            raise NetworkError("Failed to fetch", url=request.url)

        outcome = self.routes.get(request.key)
        if outcome is None:
            return make_response(b"not found", status=404, url=request.key)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome.clone()

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fetcher():
    """Scripted fetcher with nothing routed."""
    return FakeFetcher()


@pytest.fixture
def storage():
    """Empty in-memory storage."""
    return MemoryCacheStorage()


@pytest.fixture
def events():
    """Event emitter with history enabled."""
    return EventEmitter()


@pytest.fixture
def routing_config():
    return RoutingConfig(origin=ORIGIN)


@pytest.fixture
def app_config(routing_config):
    """Small configuration: three app URLs, one asset, 1 KB eviction ceiling."""
    return AppConfig(
        routing=routing_config,
        precache=PrecacheConfig(
            app_urls=['index.html', 'offline.html', 'css/style.css'],
            asset_urls=['logo.png'],
        ),
        eviction=EvictionConfig(max_bucket_size_mb=1 / 1024, interval_seconds=0.01),
    )


@pytest.fixture
def registry(app_config):
    return BucketRegistry(app_config.buckets)


@pytest.fixture
def manifest_fetcher(fetcher):
    """Fetcher serving the manifest URLs of ``app_config``."""
    fetcher.add('index.html', '<html>home</html>', content_type='text/html')
    fetcher.add('offline.html', '<html>offline</html>', content_type='text/html')
    fetcher.add('css/style.css', 'body{}', content_type='text/css')
    fetcher.add('logo.png', b'\x89PNG', content_type='image/png')
    return fetcher


@pytest.fixture
def engine(app_config, storage, manifest_fetcher, events):
    """Engine over memory storage and the manifest fetcher, not yet started."""
    return CacheEngine(app_config, storage=storage, fetcher=manifest_fetcher, events=events)
