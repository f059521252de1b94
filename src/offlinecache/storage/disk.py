"""
Disk Bucket Storage

Persists buckets under a root directory so cached content survives
restarts. Layout::

    <root>/<sha256(bucket name)>/bucket.json
    <root>/<sha256(bucket name)>/<sha256(key)>.entry

Entries are pickled dicts carrying their own insertion order; the
storage counter resumes from the largest stored value.
"""

import hashlib
import json
import logging
import pickle
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from offlinecache.core.exceptions import ErrorCode, StorageError
from offlinecache.http import Response
from offlinecache.storage.base import Bucket, CacheStorage, Entry


logger = logging.getLogger(__name__)

BUCKET_MARKER = "bucket.json"
ENTRY_SUFFIX = ".entry"


def _hash(value: str) -> str:
    """Hash names and keys to ensure valid filenames of consistent length."""
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


class DiskBucket(Bucket):
    """Bucket stored as one pickle file per entry."""

    def __init__(
        self,
        name: str,
        directory: Path,
        next_order: Callable[[], int],
        ensure_marker: Callable[[str, Path], None]
    ):
        super().__init__(name)
        self.directory = directory
        self._next_order = next_order
        self._ensure_marker = ensure_marker

    def _entry_path(self, key: str) -> Path:
        return self.directory / f"{_hash(key)}{ENTRY_SUFFIX}"

    def _read_entry(self, path: Path) -> Entry:
        try:
            with open(path, 'rb') as f:
                return Entry.from_dict(pickle.load(f))
        except FileNotFoundError:
            raise
        except (OSError, pickle.UnpicklingError, EOFError, TypeError, KeyError) as e:
            raise StorageError(
                f"Failed to read entry {path.name} in bucket {self.name}: {e}",
                error_code=ErrorCode.STORAGE_CORRUPT_ENTRY,
                bucket=self.name,
                cause=e
            )

    async def match(self, key: str) -> Optional[Entry]:
        try:
            return self._read_entry(self._entry_path(key))
        except FileNotFoundError:
            return None

    async def put(self, key: str, response: Response) -> Entry:
        path = self._entry_path(key)
        existing = await self.match(key) if path.exists() else None
        order = existing.insertion_order if existing else self._next_order()
        entry = Entry.from_response(key, response.clone(), order)

        # A bucket deleted while this handle was held is recreated with its marker
        self._ensure_marker(self.name, self.directory)
        try:
            tmp_path = path.with_suffix('.tmp')
            with open(tmp_path, 'wb') as f:
                pickle.dump(entry.to_dict(), f, protocol=pickle.HIGHEST_PROTOCOL)
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(
                f"Failed to write {key} to bucket {self.name}: {e}",
                error_code=ErrorCode.STORAGE_WRITE_FAILED,
                bucket=self.name,
                cause=e
            )
        return entry

    async def delete(self, key: str) -> bool:
        path = self._entry_path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(
                f"Failed to delete {key} from bucket {self.name}: {e}",
                error_code=ErrorCode.STORAGE_DELETE_FAILED,
                bucket=self.name,
                cause=e
            )

    async def entries(self) -> List[Entry]:
        if not self.directory.exists():
            return []
        entries = []
        for path in self.directory.glob(f"*{ENTRY_SUFFIX}"):
            try:
                entries.append(self._read_entry(path))
            except FileNotFoundError:
                continue  # Deleted concurrently
        return sorted(entries, key=lambda e: e.insertion_order)


class DiskCacheStorage(CacheStorage):
    """Storage persisted under a root directory."""

    def __init__(self, root: Union[str, Path]):
        super().__init__()
        self.root = Path(root)
        self._buckets: Dict[str, DiskBucket] = {}
        self._counter_loaded = False

        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create storage directory {self.root}: {e}",
                error_code=ErrorCode.STORAGE_OPEN_FAILED,
                cause=e
            )
        logger.info(f"Disk cache directory: {self.root}")

    def next_insertion_order(self) -> int:
        if not self._counter_loaded:
            self._insertion_counter = self._scan_max_insertion_order()
            self._counter_loaded = True
        return super().next_insertion_order()

    def _scan_max_insertion_order(self) -> int:
        highest = 0
        for path in self.root.glob(f"*/*{ENTRY_SUFFIX}"):
            try:
                with open(path, 'rb') as f:
                    highest = max(highest, pickle.load(f).get('insertion_order', 0))
            except (OSError, pickle.UnpicklingError, EOFError, AttributeError) as e:
                logger.warning(f"Skipping unreadable entry {path}: {e}")
        return highest

    def _bucket_dir(self, name: str) -> Path:
        return self.root / _hash(name)

    def _read_markers(self) -> List[Dict[str, object]]:
        markers = []
        for marker in self.root.glob(f"*/{BUCKET_MARKER}"):
            try:
                markers.append(json.loads(marker.read_text(encoding='utf-8')))
            except (OSError, json.JSONDecodeError) as e:
                raise StorageError(
                    f"Unreadable bucket marker {marker}: {e}",
                    error_code=ErrorCode.STORAGE_READ_FAILED,
                    cause=e
                )
        return sorted(markers, key=lambda m: m.get('created', 0))

    async def open(self, name: str) -> DiskBucket:
        bucket = self._buckets.get(name)
        if bucket is not None and bucket.directory.exists():
            return bucket

        directory = self._bucket_dir(name)
        self._ensure_marker(name, directory)

        bucket = DiskBucket(name, directory, self.next_insertion_order, self._ensure_marker)
        self._buckets[name] = bucket
        return bucket

    def _ensure_marker(self, name: str, directory: Path) -> None:
        """Create the bucket directory and its marker unless the marker exists."""
        marker = directory / BUCKET_MARKER
        if not marker.exists():
            created = max((m.get('created', 0) for m in self._read_markers()), default=0) + 1
            try:
                directory.mkdir(parents=True, exist_ok=True)
                marker.write_text(json.dumps({'name': name, 'created': created}), encoding='utf-8')
            except OSError as e:
                raise StorageError(
                    f"Failed to create bucket {name}: {e}",
                    error_code=ErrorCode.STORAGE_OPEN_FAILED,
                    bucket=name,
                    cause=e
                )
            logger.debug(f"Created bucket {name} at {directory}")

    async def has(self, name: str) -> bool:
        return (self._bucket_dir(name) / BUCKET_MARKER).exists()

    async def delete(self, name: str) -> bool:
        directory = self._bucket_dir(name)
        self._buckets.pop(name, None)
        if not directory.exists():
            return False
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise StorageError(
                f"Failed to delete bucket {name}: {e}",
                error_code=ErrorCode.STORAGE_DELETE_FAILED,
                bucket=name,
                cause=e
            )
        return True

    async def keys(self) -> List[str]:
        return [str(m['name']) for m in self._read_markers() if 'name' in m]
