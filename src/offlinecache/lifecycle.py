"""
Lifecycle Manager

Install populates the persistent buckets from the static manifests,
activate deletes buckets left over from older configurations and starts
interception, and the eviction sweep keeps ephemeral and page buckets
under their size ceiling.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from offlinecache.buckets import BucketRegistry
from offlinecache.core.config.models import AppConfig
from offlinecache.core.events import (
    BucketDeletedEvent, ErrorEvent, EventEmitter, EvictionEvent, LifecycleEvent
)
from offlinecache.core.exceptions import StorageError
from offlinecache.network import Fetcher
from offlinecache.populate import FailedUrl, PopulateReport, populate_bucket
from offlinecache.storage.base import CacheStorage


logger = logging.getLogger(__name__)


class LifecycleState(Enum):
    PENDING = "pending"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVE = "active"


@dataclass
class InstallReport:
    """Outcome of populating the persistent buckets."""
    reports: List[PopulateReport] = field(default_factory=list)

    @property
    def cached(self) -> List[Any]:
        return [url for report in self.reports for url in report.cached]

    @property
    def failed(self) -> List[FailedUrl]:
        return [failure for report in self.reports for failure in report.failed]

    def as_populate_report(self) -> PopulateReport:
        """Flatten into a single report for control replies."""
        return PopulateReport(bucket="", cached=self.cached, failed=self.failed)


@dataclass
class EvictionReport:
    """One bucket trimmed by the eviction sweep."""
    bucket: str
    size_before: int
    entries_before: int
    evicted: List[str] = field(default_factory=list)

    @property
    def entries_removed(self) -> int:
        return len(self.evicted)


class LifecycleManager:
    """Drives install, activation and eviction for one engine."""

    def __init__(
        self,
        config: AppConfig,
        storage: CacheStorage,
        registry: BucketRegistry,
        fetcher: Fetcher,
        events: Optional[EventEmitter] = None
    ):
        self.config = config
        self.storage = storage
        self.registry = registry
        self.fetcher = fetcher
        self.events = events

        self.state = LifecycleState.PENDING
        self._eviction_task: Optional[asyncio.Task] = None

    @property
    def is_controlling(self) -> bool:
        return self.state == LifecycleState.ACTIVE

    async def install(self) -> InstallReport:
        """
        Populate the persistent app and asset buckets.

        Individual fetch failures are logged and skipped; install itself
        only fails on storage errors opening a bucket, which are logged too.

        Returns:
            Cached and failed URLs across both buckets
        """
        await self._transition(LifecycleState.INSTALLING)
        report = await self._populate_persistent()
        logger.info(f"Install cached {len(report.cached)} URLs, {len(report.failed)} failed")
        await self._transition(LifecycleState.INSTALLED, cached=[str(u) for u in report.cached])
        return report

    async def precache(self) -> PopulateReport:
        """Repeat install-time population without changing lifecycle state."""
        report = await self._populate_persistent()
        return report.as_populate_report()

    async def _populate_persistent(self) -> InstallReport:
        report = InstallReport()
        manifests = [
            (self.registry.app, self.config.precache.app_urls),
            (self.registry.assets, self.config.precache.asset_urls),
        ]
        for bucket_name, urls in manifests:
            try:
                report.reports.append(await populate_bucket(
                    self.storage, bucket_name, urls, self.fetcher,
                    self.config.routing.origin, self.events
                ))
            except StorageError as e:
                logger.error(f"Could not open {bucket_name} during install: {e.message}")
                await self._emit_error(e, "install", bucket_name)
                report.reports.append(PopulateReport(
                    bucket=bucket_name,
                    failed=[FailedUrl(url, e.message) for url in urls],
                ))
        return report

    async def activate(self) -> List[str]:
        """
        Delete unrecognized buckets and start controlling requests.

        Returns:
            Names of the deleted buckets
        """
        await self._transition(LifecycleState.ACTIVATING)

        deleted = []
        for name in await self.storage.keys():
            if self.registry.is_recognized(name):
                continue
            try:
                if await self.storage.delete(name):
                    deleted.append(name)
                    logger.info(f"Deleted stale bucket {name}")
                    if self.events is not None:
                        await self.events.emit_async(BucketDeletedEvent(bucket=name, reason="activate"))
            except StorageError as e:
                logger.error(f"Could not delete stale bucket {name}: {e.message}")
                await self._emit_error(e, "activate", name)

        await self._transition(LifecycleState.ACTIVE, deleted_buckets=deleted)
        return deleted

    async def evict(self) -> List[EvictionReport]:
        """
        Trim every ephemeral and page bucket over the size ceiling.

        The oldest half of the entries (by insertion order, rounded down)
        is deleted from each such bucket. Storage failures are logged and
        the sweep moves on.

        Returns:
            One report per bucket that was trimmed
        """
        ceiling = self.config.eviction.max_bucket_size_bytes
        reports = []

        for name in self.registry.eviction_candidates():
            try:
                if not await self.storage.has(name):
                    continue
                bucket = await self.storage.open(name)
                entries = await bucket.entries()
                size = sum(entry.size for entry in entries)
                if size <= ceiling:
                    continue

                report = EvictionReport(bucket=name, size_before=size, entries_before=len(entries))
                for entry in entries[:len(entries) // 2]:
                    if await bucket.delete(entry.key):
                        report.evicted.append(entry.key)

            except StorageError as e:
                logger.error(f"Eviction of {name} failed: {e.message}")
                await self._emit_error(e, "evict", name)
                continue

            logger.info(
                f"Evicted {report.entries_removed}/{report.entries_before} entries "
                f"from {name} ({size} bytes over {ceiling})"
            )
            if self.events is not None:
                await self.events.emit_async(EvictionEvent(
                    bucket=name,
                    size_before=report.size_before,
                    entries_before=report.entries_before,
                    entries_removed=report.entries_removed,
                ))
            reports.append(report)

        return reports

    def start_periodic_eviction(self, force: bool = False) -> None:
        """
        Run the eviction sweep in the background every configured interval.

        Args:
            force: Start even when ``eviction.enabled`` is off
        """
        if not (force or self.config.eviction.enabled):
            logger.debug("Periodic eviction disabled")
            return
        if self._eviction_task is not None and not self._eviction_task.done():
            return
        self._eviction_task = asyncio.create_task(self._eviction_loop())

    async def _eviction_loop(self) -> None:
        interval = self.config.eviction.interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await self.evict()
            except Exception:
                logger.exception("Eviction sweep failed")

    async def stop(self) -> None:
        """Stop the periodic eviction sweep."""
        task, self._eviction_task = self._eviction_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _transition(self, state: LifecycleState, **kwargs) -> None:
        previous, self.state = self.state, state
        logger.debug(f"Lifecycle {previous.value} -> {state.value}")
        if self.events is not None:
            await self.events.emit_async(LifecycleEvent(
                state=state.value,
                previous_state=previous.value,
                **kwargs
            ))

    async def _emit_error(self, error: StorageError, context: str, bucket: str) -> None:
        if self.events is not None:
            await self.events.emit_async(ErrorEvent(
                error_type=type(error).__name__,
                error_message=error.message,
                error_context=context,
                bucket=bucket,
            ))
