"""
Bucket Storage Interfaces

Named buckets of keyed entries behind an async interface, so the engine
runs unchanged against the in-memory backend used in tests and the disk
backend used by the CLI.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from offlinecache.http import Headers, Response


@dataclass
class Entry:
    """A stored response."""

    key: str
    payload: bytes
    size: int
    content_type: str
    insertion_order: int
    status: int = 200
    headers: Headers = field(default_factory=Headers)
    url: str = ""
    stored_at: float = field(default_factory=time.time)

    @property
    def estimated_size(self) -> int:
        """Declared Content-Length if present, else the measured payload length."""
        declared = self.headers.get('content-length')
        if declared is not None:
            try:
                return int(declared)
            except ValueError:
                pass
        return self.size

    def to_response(self) -> Response:
        """Replay the entry as a fresh response object."""
        return Response(
            status=self.status,
            body=self.payload,
            headers=self.headers.copy(),
            url=self.url or self.key,
        )

    @classmethod
    def from_response(cls, key: str, response: Response, insertion_order: int) -> 'Entry':
        return cls(
            key=key,
            payload=response.body,
            size=len(response.body),
            content_type=response.content_type,
            insertion_order=insertion_order,
            status=response.status,
            headers=response.headers.copy(),
            url=response.url or key,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'payload': self.payload,
            'size': self.size,
            'content_type': self.content_type,
            'insertion_order': self.insertion_order,
            'status': self.status,
            'headers': dict(self.headers),
            'url': self.url,
            'stored_at': self.stored_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Entry':
        data = dict(data)
        data['headers'] = Headers(data.get('headers'))
        return cls(**data)


class Bucket(ABC):
    """A named partition of entries with unique keys."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def match(self, key: str) -> Optional[Entry]:
        """Return the entry stored under ``key``, if any."""

    @abstractmethod
    async def put(self, key: str, response: Response) -> Entry:
        """
        Store a response under ``key``.

        Repeated writes overwrite in place and keep the original
        insertion order; concurrent writers race and the last one wins.
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove an entry. Returns True if it existed."""

    @abstractmethod
    async def entries(self) -> List[Entry]:
        """All entries ordered by insertion order, oldest first."""

    async def keys(self) -> List[str]:
        return [entry.key for entry in await self.entries()]

    async def total_size(self) -> int:
        """Measured size: sum of payload lengths."""
        return sum(entry.size for entry in await self.entries())

    async def estimated_size(self) -> int:
        """Size as reported to callers, preferring declared lengths."""
        return sum(entry.estimated_size for entry in await self.entries())


class CacheStorage(ABC):
    """Named buckets, created lazily on first open."""

    def __init__(self):
        self._insertion_counter = 0

    def next_insertion_order(self) -> int:
        """Monotonic counter shared by all buckets of this storage."""
        self._insertion_counter += 1
        return self._insertion_counter

    @abstractmethod
    async def open(self, name: str) -> Bucket:
        """Open a bucket, creating it if it does not exist."""

    @abstractmethod
    async def has(self, name: str) -> bool:
        """Check whether a bucket exists."""

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Delete a bucket and all its entries. Returns True if it existed."""

    @abstractmethod
    async def keys(self) -> List[str]:
        """Bucket names in creation order."""

    async def locate(self, key: str) -> Optional[Tuple[str, Entry]]:
        """First ``(bucket name, entry)`` stored under ``key``, in bucket creation order."""
        for name in await self.keys():
            bucket = await self.open(name)
            entry = await bucket.match(key)
            if entry is not None:
                return name, entry
        return None

    async def match(self, key: str) -> Optional[Entry]:
        """First entry stored under ``key`` across buckets."""
        found = await self.locate(key)
        return found[1] if found else None

    async def close(self) -> None:
        """Release backend resources."""
