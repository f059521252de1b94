#!/usr/bin/env python3
"""
Tests for the OfflineCache Event Emitter

Tests subscriptions, sync and async delivery, observer error isolation
and history.
"""

import asyncio
import gc
from unittest.mock import Mock

import pytest

from offlinecache.core.events.emitter import EventEmitter
from offlinecache.core.events.types import (
    BaseEvent, CacheHitEvent, EntryStoredEvent, create_event_from_dict
)


class TestEventEmitterBasic:
    """Test suite for basic EventEmitter functionality."""

    def test_emitter_initialization(self):
        """Test EventEmitter initialization."""
        emitter = EventEmitter()

        assert emitter.max_history == 1000
        assert emitter.enable_history is True
        assert len(emitter._observers) == 0
        assert len(emitter._wildcard_observers) == 0
        assert emitter._stats['events_emitted'] == 0

    def test_subscribe_by_name_and_class(self):
        """Test subscribing with a type name or an event class."""
        emitter = EventEmitter()
        assert emitter.subscribe('CacheHitEvent', Mock()) is True
        assert emitter.subscribe(CacheHitEvent, Mock()) is True
        assert emitter.get_observers('CacheHitEvent')['CacheHitEvent'] == 2

    def test_unsubscribe(self):
        emitter = EventEmitter()
        observer = Mock()
        emitter.subscribe('*', observer)

        assert emitter.unsubscribe('*', observer) is True
        assert emitter.unsubscribe('*', observer) is False
        assert emitter.get_observers()['wildcard'] == 0


class TestEventDelivery:
    """Test suite for event processing functionality."""

    def test_sync_emit_outside_loop(self):
        """Without a running loop observers are called immediately."""
        emitter = EventEmitter()
        typed, wildcard, other = Mock(), Mock(), Mock()
        emitter.subscribe(CacheHitEvent, typed)
        emitter.subscribe('*', wildcard)
        emitter.subscribe(EntryStoredEvent, other)

        event = CacheHitEvent(url="u", bucket="b")
        emitter.emit(event)

        typed.assert_called_once_with(event)
        wildcard.assert_called_once_with(event)
        other.assert_not_called()

    @pytest.mark.asyncio
    async def test_emit_async_awaits_coroutine_observers(self):
        emitter = EventEmitter()
        received = []

        async def observer(event):
            await asyncio.sleep(0)
            received.append(event)

        emitter.subscribe('*', observer)
        await emitter.emit_async(BaseEvent())

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_emit_inside_loop_schedules(self):
        """Inside a loop ``emit`` schedules delivery; ``drain`` waits for it."""
        emitter = EventEmitter()
        observer = Mock()
        emitter.subscribe('*', observer)

        emitter.emit(BaseEvent())
        await emitter.drain()

        observer.assert_called_once()

    @pytest.mark.asyncio
    async def test_observer_errors_isolated(self):
        emitter = EventEmitter()
        good = Mock()
        emitter.subscribe('*', Mock(side_effect=RuntimeError("bad observer")))
        emitter.subscribe('*', good)

        await emitter.emit_async(BaseEvent())

        good.assert_called_once()
        assert emitter.get_statistics()['observer_errors'] == 1

    def test_weak_subscription_expires(self):
        emitter = EventEmitter()

        class Sink:
            def __call__(self, event):
                pass

        sink = Sink()
        emitter.subscribe('*', sink, weak=True)
        del sink
        gc.collect()

        emitter.emit(BaseEvent())
        assert emitter.get_statistics()['observers_notified'] == 0


class TestHistory:
    """Test suite for event history."""

    def test_history_filter_and_limit(self):
        emitter = EventEmitter(max_history=3)
        for i in range(4):
            emitter.emit(CacheHitEvent(url=str(i)))
        emitter.emit(EntryStoredEvent(url="s"))

        history = emitter.get_event_history()
        assert len(history) == 3
        assert [e.url for e in emitter.get_event_history('CacheHitEvent')] == ["2", "3"]
        assert emitter.get_event_history(limit=1)[0].url == "s"

    def test_history_disabled(self):
        emitter = EventEmitter(enable_history=False)
        emitter.emit(BaseEvent())
        assert emitter.get_event_history() == []

    def test_clear(self):
        emitter = EventEmitter()
        emitter.subscribe('*', Mock())
        emitter.emit(BaseEvent())

        emitter.clear_history()
        emitter.clear_observers()

        assert emitter.get_event_history() == []
        assert emitter.get_observers() == {'wildcard': 0}


class TestEventTypes:
    """Test suite for event serialization."""

    def test_to_dict_and_back(self):
        event = EntryStoredEvent(url="u", bucket="b", size=3, insertion_order=9)
        data = event.to_dict()

        assert data['event_type'] == "EntryStoredEvent"
        restored = create_event_from_dict(data)
        assert restored == event

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            create_event_from_dict({'event_type': 'Nope'})
