"""
Bucket Storage

Async storage abstraction over named buckets with in-memory and disk
backends.
"""

from pathlib import Path

from offlinecache.core.config.models import StorageConfig
from offlinecache.storage.base import Bucket, CacheStorage, Entry
from offlinecache.storage.disk import DiskCacheStorage
from offlinecache.storage.memory import MemoryCacheStorage


def create_storage(config: StorageConfig) -> CacheStorage:
    """Build the storage backend named in configuration."""
    if config.backend == "disk":
        return DiskCacheStorage(Path(config.directory))
    return MemoryCacheStorage()


__all__ = [
    'Bucket',
    'CacheStorage',
    'Entry',
    'DiskCacheStorage',
    'MemoryCacheStorage',
    'create_storage',
]
