"""
Bucket Population

Fetches a list of URLs concurrently and stores each 2xx response in one
bucket. Each URL succeeds or fails on its own; results keep input order.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from offlinecache.core.events import EntryStoredEvent, EventEmitter
from offlinecache.core.exceptions import HttpError, NetworkError, StorageError
from offlinecache.http import Request
from offlinecache.network import Fetcher
from offlinecache.storage.base import Bucket, CacheStorage


logger = logging.getLogger(__name__)


@dataclass
class FailedUrl:
    url: Any
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {'url': self.url, 'reason': self.reason}


@dataclass
class PopulateReport:
    """Per-URL outcome of populating a bucket."""
    bucket: str = ""
    cached: List[Any] = field(default_factory=list)
    failed: List[FailedUrl] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.cached) + len(self.failed)

    @property
    def success(self) -> bool:
        """Soft success: true while at least one URL did not fail."""
        return len(self.failed) < self.total


async def populate_bucket(
    storage: CacheStorage,
    bucket_name: str,
    urls: Sequence[Any],
    fetcher: Fetcher,
    origin: str,
    events: Optional[EventEmitter] = None
) -> PopulateReport:
    """
    Fetch every URL concurrently and store 2xx responses in ``bucket_name``.

    Args:
        storage: Bucket storage
        bucket_name: Target bucket, created if missing
        urls: URLs, relative ones resolved against ``origin``
        fetcher: Network fetcher
        origin: Origin of the hosting application
        events: Optional emitter for ``EntryStoredEvent``s

    Returns:
        Report with cached URLs and failed URLs with reasons, in input order

    Raises:
        StorageError: If the bucket itself cannot be opened
    """
    bucket = await storage.open(bucket_name)
    outcomes = await asyncio.gather(
        *(_cache_one(bucket, url, fetcher, origin, events) for url in urls)
    )

    report = PopulateReport(bucket=bucket_name)
    for url, reason in outcomes:
        if reason is None:
            report.cached.append(url)
        else:
            report.failed.append(FailedUrl(url, reason))

    logger.info(f"Cached {len(report.cached)}/{report.total} URLs in {bucket_name}")
    return report


async def _cache_one(
    bucket: Bucket,
    url: Any,
    fetcher: Fetcher,
    origin: str,
    events: Optional[EventEmitter]
) -> Tuple[Any, Optional[str]]:
    if not isinstance(url, str) or not url.strip():
        return url, "URL must be a non-empty string"

    request = Request.for_url(url.strip(), origin)
    try:
        response = await fetcher.fetch(request)
        if not response.ok:
            raise HttpError(f"HTTP {response.status}", status_code=response.status, url=request.url)
    except NetworkError as e:
        logger.warning(f"Failed to cache {url}: {e.message}")
        return url, e.message

    try:
        entry = await bucket.put(request.key, response.clone())
    except StorageError as e:
        logger.warning(f"Failed to store {url} in {bucket.name}: {e.message}")
        return url, e.message

    if events is not None:
        await events.emit_async(EntryStoredEvent(
            url=request.key,
            bucket=bucket.name,
            size=entry.size,
            insertion_order=entry.insertion_order,
        ))
    return url, None
