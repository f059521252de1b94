"""
In-Memory Bucket Storage
"""

import logging
from typing import Callable, Dict, List, Optional

from offlinecache.http import Response
from offlinecache.storage.base import Bucket, CacheStorage, Entry


logger = logging.getLogger(__name__)


class MemoryBucket(Bucket):
    """Bucket backed by a dict of entries."""

    def __init__(self, name: str, next_order: Callable[[], int]):
        super().__init__(name)
        self._entries: Dict[str, Entry] = {}
        self._next_order = next_order

    async def match(self, key: str) -> Optional[Entry]:
        return self._entries.get(key)

    async def put(self, key: str, response: Response) -> Entry:
        existing = self._entries.get(key)
        order = existing.insertion_order if existing else self._next_order()
        entry = Entry.from_response(key, response.clone(), order)
        self._entries[key] = entry
        return entry

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def entries(self) -> List[Entry]:
        return sorted(self._entries.values(), key=lambda e: e.insertion_order)

    def __len__(self) -> int:
        return len(self._entries)


class MemoryCacheStorage(CacheStorage):
    """Process-local storage; contents are lost when the process exits."""

    def __init__(self):
        super().__init__()
        self._buckets: Dict[str, MemoryBucket] = {}

    async def open(self, name: str) -> MemoryBucket:
        bucket = self._buckets.get(name)
        if bucket is None:
            bucket = MemoryBucket(name, self.next_insertion_order)
            self._buckets[name] = bucket
            logger.debug(f"Created bucket {name}")
        return bucket

    async def has(self, name: str) -> bool:
        return name in self._buckets

    async def delete(self, name: str) -> bool:
        return self._buckets.pop(name, None) is not None

    async def keys(self) -> List[str]:
        return list(self._buckets)
