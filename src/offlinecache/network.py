"""
Network Fetchers

The engine reaches the network only through a ``Fetcher``. The
production fetcher wraps an ``aiohttp.ClientSession``; tests inject a
scripted fake.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp

from offlinecache.core.config.models import NetworkConfig
from offlinecache.core.exceptions import ErrorCode, NetworkError
from offlinecache.http import Headers, Request, Response


logger = logging.getLogger(__name__)

# aiohttp hands back the decoded body; these describe the wire form only
WIRE_HEADERS = ('content-encoding', 'transfer-encoding')


def _decoded_headers(raw, body: bytes) -> Headers:
    """Headers describing ``body`` as stored, not as it was transferred."""
    headers = Headers({k: v for k, v in raw.items() if k.lower() not in WIRE_HEADERS})
    headers['content-length'] = str(len(body))
    return headers


class Fetcher(ABC):
    """Performs network fetches for the engine."""

    @abstractmethod
    async def fetch(self, request: Request) -> Response:
        """
        Fetch a request from the network.

        Non-2xx statuses are returned as responses, not raised.

        Raises:
            NetworkError: If the fetch was rejected or errored
        """

    async def close(self) -> None:
        """Release network resources."""


class AiohttpFetcher(Fetcher):
    """Fetcher backed by a lazily created ``aiohttp.ClientSession``."""

    def __init__(self, config: Optional[NetworkConfig] = None):
        self.config = config or NetworkConfig()
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                headers={'User-Agent': self.config.user_agent},
                connector=aiohttp.TCPConnector(limit=self.config.max_concurrent),
            )
        return self._session

    async def fetch(self, request: Request) -> Response:
        session = await self._get_session()
        # Range is resolved against stored entries; the network always sees full fetches.
        headers = {k: v for k, v in request.headers.items() if k != 'range'}

        try:
            async with session.request(request.method, request.url, headers=headers) as resp:
                body = await resp.read()
                return Response(
                    status=resp.status,
                    body=body,
                    headers=_decoded_headers(resp.headers, body),
                    url=str(resp.url),
                    status_text=resp.reason or "",
                )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                f"Timed out fetching {request.url}",
                error_code=ErrorCode.NETWORK_TIMEOUT,
                url=request.url,
                cause=e
            )
        except aiohttp.ClientError as e:
            raise NetworkError(
                f"Failed to fetch {request.url}: {e}",
                url=request.url,
                cause=e
            )

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
