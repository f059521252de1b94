"""
Tests for the Lifecycle Manager

Tests install, activation, the eviction sweep and periodic eviction.
"""

import asyncio

import pytest

from offlinecache.core.exceptions import StorageError
from offlinecache.lifecycle import LifecycleManager, LifecycleState

from tests.conftest import ORIGIN, make_response


@pytest.fixture
def lifecycle(app_config, storage, registry, manifest_fetcher, events):
    return LifecycleManager(app_config, storage, registry, manifest_fetcher, events)


async def fill(storage, name, count, size):
    bucket = await storage.open(name)
    for i in range(count):
        await bucket.put(f"{ORIGIN}/item{i}", make_response(b'x' * size))
    return bucket


class TestInstall:
    """Test suite for install."""

    @pytest.mark.asyncio
    async def test_populates_persistent_buckets(self, lifecycle, storage, registry):
        report = await lifecycle.install()

        assert report.cached == ['index.html', 'offline.html', 'css/style.css', 'logo.png']
        assert report.failed == []
        app = await storage.open(registry.app)
        assets = await storage.open(registry.assets)
        assert len(await app.keys()) == 3
        assert await assets.keys() == [f"{ORIGIN}/logo.png"]
        assert lifecycle.state == LifecycleState.INSTALLED

    @pytest.mark.asyncio
    async def test_failures_are_skipped(self, lifecycle, manifest_fetcher, storage, registry):
        """A failing manifest URL does not stop the others."""
        manifest_fetcher.fail('css/style.css', "offline")

        report = await lifecycle.install()

        assert [f.url for f in report.failed] == ['css/style.css']
        assert report.failed[0].reason == "offline"
        app = await storage.open(registry.app)
        assert len(await app.keys()) == 2

    @pytest.mark.asyncio
    async def test_storage_failure_is_logged(self, lifecycle, storage):
        """A bucket that cannot be opened marks its URLs failed instead of raising."""
        async def broken_open(name):
            raise StorageError("read-only", bucket=name)
        storage.open = broken_open

        report = await lifecycle.install()

        assert report.cached == []
        assert len(report.failed) == 4
        assert lifecycle.state == LifecycleState.INSTALLED

    @pytest.mark.asyncio
    async def test_precache_keeps_state(self, lifecycle):
        await lifecycle.install()
        await lifecycle.activate()

        report = await lifecycle.precache()

        assert report.success
        assert lifecycle.state == LifecycleState.ACTIVE


class TestActivate:
    """Test suite for activation."""

    @pytest.mark.asyncio
    async def test_deletes_unrecognized_buckets(self, lifecycle, storage, registry, events):
        for name in ("old-app-v1", registry.app, registry.page_bucket('siga'), "old-runtime"):
            await storage.open(name)

        deleted = await lifecycle.activate()

        assert deleted == ["old-app-v1", "old-runtime"]
        assert await storage.keys() == [registry.app, registry.page_bucket('siga')]
        assert lifecycle.is_controlling

    @pytest.mark.asyncio
    async def test_transitions(self, lifecycle, events):
        await lifecycle.install()
        await lifecycle.activate()

        states = [e.state for e in events.get_event_history('LifecycleEvent')]
        assert states == ['installing', 'installed', 'activating', 'active']


class TestEvict:
    """Test suite for the eviction sweep (1 KB ceiling in tests)."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [2, 5, 6, 11])
    async def test_removes_oldest_half(self, lifecycle, storage, registry, count):
        """K entries over the ceiling: floor(K/2) oldest removed, newest kept."""
        bucket = await fill(storage, registry.runtime, count, 600)

        reports = await lifecycle.evict()

        assert len(reports) == 1
        assert reports[0].entries_removed == count // 2
        remaining = await bucket.keys()
        assert remaining == [f"{ORIGIN}/item{i}" for i in range(count // 2, count)]

    @pytest.mark.asyncio
    async def test_under_ceiling_untouched(self, lifecycle, storage, registry):
        bucket = await fill(storage, registry.runtime, 3, 100)

        assert await lifecycle.evict() == []
        assert len(await bucket.keys()) == 3

    @pytest.mark.asyncio
    async def test_single_entry_over_ceiling(self, lifecycle, storage, registry):
        """floor(1/2) is zero, so a single oversized entry stays."""
        bucket = await fill(storage, registry.runtime, 1, 5000)

        reports = await lifecycle.evict()

        assert reports[0].entries_removed == 0
        assert len(await bucket.keys()) == 1

    @pytest.mark.asyncio
    async def test_persistent_buckets_never_evicted(self, lifecycle, storage, registry):
        app = await fill(storage, registry.app, 4, 1000)
        pages = await fill(storage, registry.page_bucket('install'), 4, 1000)

        reports = await lifecycle.evict()

        assert [r.bucket for r in reports] == [registry.page_bucket('install')]
        assert len(await app.keys()) == 4
        assert len(await pages.keys()) == 2

    @pytest.mark.asyncio
    async def test_overwrite_keeps_insertion_order(self, lifecycle, storage, registry):
        """Rewriting the oldest entry does not make it newer."""
        bucket = await fill(storage, registry.runtime, 4, 600)
        await bucket.put(f"{ORIGIN}/item0", make_response(b'y' * 600))

        await lifecycle.evict()

        assert await bucket.keys() == [f"{ORIGIN}/item2", f"{ORIGIN}/item3"]

    @pytest.mark.asyncio
    async def test_storage_failure_swallowed(self, lifecycle, storage, registry, events):
        await fill(storage, registry.runtime, 4, 600)

        async def broken_has(name):
            raise StorageError("unreadable", bucket=name)
        storage.has = broken_has

        assert await lifecycle.evict() == []
        assert events.get_event_history('ErrorEvent')[-1].error_context == 'evict'


class TestPeriodicEviction:
    """Test suite for the background sweep."""

    @pytest.mark.asyncio
    async def test_runs_in_background(self, lifecycle, storage, registry):
        bucket = await fill(storage, registry.runtime, 4, 600)

        lifecycle.start_periodic_eviction()
        for _ in range(50):
            await asyncio.sleep(0.01)
            if len(await bucket.keys()) == 2:
                break
        await lifecycle.stop()

        assert len(await bucket.keys()) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_keeps_sweep_running(self, lifecycle, storage, caplog):
        calls = []

        async def flaky_has(name):
            calls.append(name)
            raise PermissionError("denied")
        storage.has = flaky_has

        lifecycle.start_periodic_eviction()
        for _ in range(50):
            await asyncio.sleep(0.01)
            if len(calls) >= 4:
                break

        assert not lifecycle._eviction_task.done()
        await lifecycle.stop()
        assert len(calls) >= 4
        assert "Eviction sweep failed" in caplog.text

    @pytest.mark.asyncio
    async def test_disabled(self, app_config, storage, registry, manifest_fetcher):
        app_config.eviction.enabled = False
        lifecycle = LifecycleManager(app_config, storage, registry, manifest_fetcher)

        lifecycle.start_periodic_eviction()

        assert lifecycle._eviction_task is None
        await lifecycle.stop()
