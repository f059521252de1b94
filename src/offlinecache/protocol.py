"""
Control Protocol

Message and single-reply RPC surface for managing the cache out of band:

- ``BULK_CACHE{urls}`` stores URLs in the runtime bucket
- ``PAGE_CACHE{pageId, urls}`` stores URLs in a page's manual bucket
- ``INFO{}`` reports entry counts and sizes per bucket
- ``CLEAR{bucketName?}`` deletes one bucket or all of them
- ``PRECACHE{}`` repeats install-time population

Every message gets exactly one reply. Failures never escape the handler;
they become ``{"success": False, "error": ...}`` replies.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from offlinecache.buckets import BucketRegistry
from offlinecache.core.events import BucketDeletedEvent, ControlMessageEvent, EventEmitter
from offlinecache.core.exceptions import (
    CallerTimeoutError, ErrorCode, OfflineCacheError, ProtocolError
)
from offlinecache.network import Fetcher
from offlinecache.populate import PopulateReport, populate_bucket
from offlinecache.storage.base import CacheStorage


logger = logging.getLogger(__name__)

BULK_CACHE = "BULK_CACHE"
PAGE_CACHE = "PAGE_CACHE"
INFO = "INFO"
CLEAR = "CLEAR"
PRECACHE = "PRECACHE"

# Older message names still sent by existing pages
LEGACY_ALIASES = {
    "CACHE_URLS": BULK_CACHE,
    "CACHE_PAGE": PAGE_CACHE,
    "GET_CACHE_INFO": INFO,
    "CLEAR_CACHE": CLEAR,
    "CACHE_CORE": PRECACHE,
}

UNKNOWN_PAGE = "Unknown page ID"
URLS_NOT_ARRAY = "URLs must be an array"

PrecacheHook = Callable[[], Awaitable[PopulateReport]]


def _new_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class ControlMessage:
    """A parsed control message."""
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    correlation_id: str = field(default_factory=_new_correlation_id)

    @classmethod
    def from_dict(cls, data: Any) -> 'ControlMessage':
        """
        Parse a message in either ``{type, payload}`` or flat ``{type, ...}`` form.

        Legacy message names are mapped to their current names.

        Raises:
            ProtocolError: If the message is not an object or has no type
        """
        if not isinstance(data, dict):
            raise ProtocolError("Message must be an object")

        message_type = data.get('type')
        if not isinstance(message_type, str) or not message_type:
            raise ProtocolError("Message type is required")

        payload = data.get('payload')
        if payload is None:
            payload = {k: v for k, v in data.items() if k not in ('type', 'correlationId')}
        elif not isinstance(payload, dict):
            raise ProtocolError("Message payload must be an object", message_type=message_type)

        return cls(
            type=LEGACY_ALIASES.get(message_type, message_type),
            payload=dict(payload),
            correlation_id=data.get('correlationId') or _new_correlation_id(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'payload': dict(self.payload),
            'correlationId': self.correlation_id,
        }


@dataclass
class ControlResult:
    """Reply to a control message; only the fields a message type uses are set."""
    success: bool
    cached: Optional[List[Any]] = None
    failed: Optional[List[Dict[str, Any]]] = None
    cache_info: Optional[Dict[str, Dict[str, int]]] = None
    cleared: Optional[List[str]] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> 'ControlResult':
        return cls(success=False, error=error)

    @classmethod
    def from_report(cls, report: PopulateReport) -> 'ControlResult':
        return cls(
            success=report.success,
            cached=list(report.cached),
            failed=[f.to_dict() for f in report.failed],
        )

    def to_dict(self) -> Dict[str, Any]:
        reply: Dict[str, Any] = {'success': self.success}
        if self.cached is not None:
            reply['cached'] = self.cached
        if self.failed is not None:
            reply['failed'] = self.failed
        if self.cache_info is not None:
            reply['cacheInfo'] = self.cache_info
        if self.cleared is not None:
            reply['cleared'] = self.cleared
        if self.error is not None:
            reply['error'] = self.error
        return reply


class ReplyChannel:
    """Single-use reply slot backed by an ``asyncio.Future``."""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or _new_correlation_id()
        self._future: Optional[asyncio.Future] = None
        self._replied = False

    def _get_future(self) -> asyncio.Future:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return self._future

    @property
    def replied(self) -> bool:
        return self._replied

    def post(self, reply: Dict[str, Any]) -> None:
        """
        Post the reply.

        Raises:
            ProtocolError: If a reply was already posted
        """
        if self._replied:
            raise ProtocolError(
                f"Reply already posted for {self.correlation_id}",
                error_code=ErrorCode.PROTOCOL_DUPLICATE_REPLY
            )
        self._replied = True
        future = self._get_future()
        if not future.done():
            future.set_result(reply)

    async def wait(self) -> Dict[str, Any]:
        """Wait for the reply."""
        return await self._get_future()


class ControlProtocolHandler:
    """Executes control messages against bucket storage."""

    def __init__(
        self,
        storage: CacheStorage,
        registry: BucketRegistry,
        fetcher: Fetcher,
        origin: str,
        events: Optional[EventEmitter] = None,
        precache: Optional[PrecacheHook] = None
    ):
        self.storage = storage
        self.registry = registry
        self.fetcher = fetcher
        self.origin = origin
        self.events = events
        self.precache = precache

        self._handlers = {
            BULK_CACHE: self._handle_bulk_cache,
            PAGE_CACHE: self._handle_page_cache,
            INFO: self._handle_info,
            CLEAR: self._handle_clear,
            PRECACHE: self._handle_precache,
        }

    async def handle(
        self,
        message: Union[ControlMessage, Dict[str, Any]],
        reply: Optional[ReplyChannel] = None
    ) -> Dict[str, Any]:
        """
        Handle one control message and post exactly one reply.

        Args:
            message: Parsed message or raw dict
            reply: Channel to post the reply on

        Returns:
            The reply that was posted
        """
        message_type = ""
        correlation_id = reply.correlation_id if reply else ""
        try:
            if not isinstance(message, ControlMessage):
                message = ControlMessage.from_dict(message)
            message_type = message.type
            correlation_id = correlation_id or message.correlation_id

            handler = self._handlers.get(message.type)
            if handler is None:
                raise ProtocolError(
                    f"Unknown message type: {message.type}",
                    error_code=ErrorCode.PROTOCOL_UNKNOWN_TYPE,
                    message_type=message.type
                )
            result = await handler(message.payload)

        except OfflineCacheError as e:
            logger.warning(f"Control message {message_type or '?'} failed: {e.message}")
            result = ControlResult.failure(e.message)
        except Exception as e:
            logger.exception(f"Unexpected error handling control message {message_type or '?'}")
            result = ControlResult.failure(str(e) or type(e).__name__)

        response = result.to_dict()
        if reply is not None:
            reply.post(response)

        if self.events is not None:
            await self.events.emit_async(ControlMessageEvent(
                message_type=message_type,
                correlation_id=correlation_id,
                success=result.success,
                cached_count=len(result.cached or []),
                failed_count=len(result.failed or []),
                error_message=result.error or "",
            ))
        return response

    async def _cache(self, bucket_name: str, urls: List[Any]) -> ControlResult:
        report = await populate_bucket(
            self.storage, bucket_name, urls, self.fetcher, self.origin, self.events
        )
        return ControlResult.from_report(report)

    async def _handle_bulk_cache(self, payload: Dict[str, Any]) -> ControlResult:
        urls = payload.get('urls')
        if not isinstance(urls, list):
            raise ProtocolError(URLS_NOT_ARRAY, ErrorCode.PROTOCOL_INVALID_URLS, BULK_CACHE)
        return await self._cache(self.registry.runtime, urls)

    async def _handle_page_cache(self, payload: Dict[str, Any]) -> ControlResult:
        bucket_name = self.registry.page_bucket(payload.get('pageId'))
        if bucket_name is None:
            raise ProtocolError(UNKNOWN_PAGE, ErrorCode.PROTOCOL_UNKNOWN_PAGE, PAGE_CACHE)

        urls = payload.get('urls')
        if not isinstance(urls, list):
            raise ProtocolError(URLS_NOT_ARRAY, ErrorCode.PROTOCOL_INVALID_URLS, PAGE_CACHE)
        return await self._cache(bucket_name, urls)

    async def _handle_info(self, payload: Dict[str, Any]) -> ControlResult:
        cache_info = {}
        for name in await self.storage.keys():
            bucket = await self.storage.open(name)
            entries = await bucket.entries()
            cache_info[name] = {
                'entries': len(entries),
                'estimatedSize': sum(entry.estimated_size for entry in entries),
            }
        return ControlResult(success=True, cache_info=cache_info)

    async def _handle_clear(self, payload: Dict[str, Any]) -> ControlResult:
        bucket_name = payload.get('bucketName')
        if bucket_name is not None and not isinstance(bucket_name, str):
            raise ProtocolError("Bucket name must be a string", message_type=CLEAR)

        names = [bucket_name] if bucket_name else await self.storage.keys()
        cleared = []
        for name in names:
            if await self.storage.delete(name):
                cleared.append(name)
                logger.info(f"Cleared bucket {name}")
                if self.events is not None:
                    await self.events.emit_async(BucketDeletedEvent(bucket=name, reason="clear"))

        return ControlResult(success=True, cleared=cleared)

    async def _handle_precache(self, payload: Dict[str, Any]) -> ControlResult:
        if self.precache is None:
            raise ProtocolError("Precache is not available", message_type=PRECACHE)
        return ControlResult.from_report(await self.precache())


class ControlClient:
    """
    Caller side of the control protocol.

    Posts a message with a fresh correlation id and waits for its reply.
    A timeout abandons the wait only; the handler keeps running.
    """

    def __init__(self, handler: ControlProtocolHandler, timeout: Optional[float] = None):
        self.handler = handler
        self.timeout = timeout
        self._in_flight: Set[asyncio.Task] = set()

    async def call(
        self,
        message: Union[ControlMessage, Dict[str, Any]],
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Send a message and wait for the reply.

        Args:
            message: Message to send
            timeout: Seconds to wait, overriding the client default

        Returns:
            The reply dict

        Raises:
            CallerTimeoutError: If no reply arrives in time
        """
        timeout = timeout if timeout is not None else self.timeout
        channel = ReplyChannel()

        task = asyncio.create_task(self.handler.handle(message, channel))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

        try:
            return await asyncio.wait_for(channel.wait(), timeout)
        except asyncio.TimeoutError:
            message_type = message.type if isinstance(message, ControlMessage) else (
                message.get('type') if isinstance(message, dict) else None
            )
            raise CallerTimeoutError(
                f"No reply to {message_type or 'control message'} within {timeout}s",
                timeout=timeout
            )

    async def drain(self) -> None:
        """Wait for handlers whose callers stopped waiting."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
