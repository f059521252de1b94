"""
Event Emitter for the OfflineCache Engine

Provides event broadcasting with async support, wildcard subscriptions
and error-isolated observers.
"""

import asyncio
import logging
import weakref
from collections import defaultdict, deque
from typing import Any, Callable, Dict, List, Optional, Set, Union

from offlinecache.core.events.types import EventType


logger = logging.getLogger(__name__)


class EventEmitter:
    """
    Event emitter with async support and observer management.

    Features:
    - Async and sync observer support
    - Wildcard event subscriptions
    - Event history for replay capability
    - Observer error isolation
    - Optional weak references to prevent memory leaks
    """

    def __init__(self, max_history: int = 1000, enable_history: bool = True):
        """
        Initialize the event emitter.

        Args:
            max_history: Maximum number of events to keep in history
            enable_history: Whether to store event history
        """
        self.max_history = max_history
        self.enable_history = enable_history

        # Observer storage: event_type -> set of observers
        self._observers: Dict[str, Set[Any]] = defaultdict(set)
        self._wildcard_observers: Set[Any] = set()

        self._event_history: deque = deque(maxlen=max_history if enable_history else 0)
        self._pending: Set[asyncio.Task] = set()

        self._stats = {
            'events_emitted': 0,
            'events_processed': 0,
            'observers_notified': 0,
            'observer_errors': 0
        }

    def subscribe(self,
                  event_type: Union[str, type],
                  observer: Callable,
                  weak: bool = False) -> bool:
        """
        Subscribe an observer to events of a specific type.

        Args:
            event_type: Event type to subscribe to (class, name, or '*' for all)
            observer: Callable or coroutine function to handle events
            weak: Use weak references to prevent memory leaks

        Returns:
            True if subscription was successful
        """
        event_type_str = event_type.__name__ if isinstance(event_type, type) else str(event_type)
        ref = weakref.ref(observer) if weak else observer

        if event_type_str in ('*', 'all'):
            self._wildcard_observers.add(ref)
        else:
            self._observers[event_type_str].add(ref)

        logger.debug(f"Subscribed observer to {event_type_str} events")
        return True

    def unsubscribe(self, event_type: Union[str, type], observer: Callable) -> bool:
        """
        Unsubscribe an observer from events.

        Args:
            event_type: Event type to unsubscribe from
            observer: Observer to remove

        Returns:
            True if the observer was found and removed
        """
        event_type_str = event_type.__name__ if isinstance(event_type, type) else str(event_type)
        if event_type_str in ('*', 'all'):
            registry = self._wildcard_observers
        else:
            registry = self._observers[event_type_str]

        to_remove = {
            obs for obs in registry
            if obs is observer or (isinstance(obs, weakref.ref) and obs() is observer)
        }
        registry -= to_remove
        return bool(to_remove)

    def emit(self, event: EventType) -> None:
        """
        Emit an event without awaiting observers.

        Inside a running event loop the notification is scheduled as a task;
        otherwise observers are called synchronously.

        Args:
            event: Event instance to emit
        """
        self._record(event)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            for observer in self._collect(event):
                if asyncio.iscoroutinefunction(observer):
                    logger.debug(f"Skipping async observer for {event.event_type} outside event loop")
                    continue
                self._safe_notify_sync(observer, event)
            self._stats['events_processed'] += 1
            return

        task = loop.create_task(self._process_event_async(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def emit_async(self, event: EventType) -> None:
        """
        Emit an event and wait for every observer to be notified.

        Args:
            event: Event instance to emit
        """
        self._record(event)
        await self._process_event_async(event)

    async def drain(self) -> None:
        """Wait for all scheduled notifications to complete."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _record(self, event: EventType) -> None:
        self._stats['events_emitted'] += 1
        if self.enable_history:
            self._event_history.append(event)

    def _collect(self, event: EventType) -> List[Callable]:
        """Resolve observers for an event, dropping dead weak references."""
        observers = []
        for obs in list(self._observers.get(event.event_type, ())) + list(self._wildcard_observers):
            if isinstance(obs, weakref.ref):
                obs = obs()
                if obs is None:
                    continue  # Weak reference expired
            observers.append(obs)
        return observers

    async def _process_event_async(self, event: EventType) -> None:
        """Notify all observers of an event with error isolation."""
        observers = self._collect(event)
        if observers:
            await asyncio.gather(
                *(self._safe_notify_async(observer, event) for observer in observers)
            )
        self._stats['events_processed'] += 1

    async def _safe_notify_async(self, observer: Callable, event: EventType) -> None:
        try:
            if asyncio.iscoroutinefunction(observer):
                await observer(event)
            else:
                observer(event)
            self._stats['observers_notified'] += 1
        except Exception as e:
            self._stats['observer_errors'] += 1
            logger.warning(f"Observer error for {event.event_type}: {e}")

    def _safe_notify_sync(self, observer: Callable, event: EventType) -> None:
        try:
            observer(event)
            self._stats['observers_notified'] += 1
        except Exception as e:
            self._stats['observer_errors'] += 1
            logger.warning(f"Observer error for {event.event_type}: {e}")

    def get_observers(self, event_type: Optional[str] = None) -> Dict[str, int]:
        """
        Get count of observers by event type.

        Args:
            event_type: Specific event type to check, or None for all

        Returns:
            Dictionary mapping event types to observer counts
        """
        if event_type:
            return {
                event_type: len(self._observers.get(event_type, set())),
                'wildcard': len(self._wildcard_observers)
            }
        result = {et: len(obs) for et, obs in self._observers.items()}
        result['wildcard'] = len(self._wildcard_observers)
        return result

    def get_event_history(self,
                          event_type: Optional[str] = None,
                          limit: Optional[int] = None) -> List[EventType]:
        """
        Get event history, optionally filtered by type.

        Args:
            event_type: Filter by specific event type
            limit: Maximum number of events to return

        Returns:
            List of events from history
        """
        events = list(self._event_history)

        if event_type:
            events = [e for e in events if e.event_type == event_type]

        if limit:
            events = events[-limit:]

        return events

    def get_statistics(self) -> Dict[str, Any]:
        """Get event system statistics."""
        return {
            **self._stats,
            'total_observers': sum(len(obs) for obs in self._observers.values()),
            'wildcard_observers': len(self._wildcard_observers),
            'history_size': len(self._event_history),
            'history_enabled': self.enable_history
        }

    def clear_history(self) -> None:
        """Clear event history."""
        self._event_history.clear()

    def clear_observers(self) -> None:
        """Remove all observers."""
        self._observers.clear()
        self._wildcard_observers.clear()
