"""
Standard Observers for the OfflineCache Event System
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, Optional

from offlinecache.core.events.types import (
    CacheHitEvent, CacheMissEvent, ControlMessageEvent, EntryStoredEvent,
    ErrorEvent, EventType, EvictionEvent, RequestRoutedEvent, event_url
)


class Observer(ABC):
    """
    Abstract base class for all event observers.

    Observers receive events from the EventEmitter and process them
    according to their specific purpose.
    """

    def __init__(self, name: str):
        """Initialize observer with a name for identification."""
        self.name = name
        self.enabled = True
        self.statistics = {
            'events_received': 0,
            'events_processed': 0,
            'events_errored': 0,
            'last_event_time': None
        }

    @abstractmethod
    def handle_event(self, event: EventType) -> None:
        """
        Handle an incoming event.

        Args:
            event: Event instance to process
        """

    def __call__(self, event: EventType) -> None:
        if not self.enabled:
            return

        self.statistics['events_received'] += 1
        self.statistics['last_event_time'] = time.time()
        try:
            self.handle_event(event)
            self.statistics['events_processed'] += 1
        except Exception as e:
            self.statistics['events_errored'] += 1
            logging.error(f"Observer {self.name} error: {e}")

    def enable(self) -> None:
        """Enable this observer."""
        self.enabled = True

    def disable(self) -> None:
        """Disable this observer."""
        self.enabled = False


class LoggingObserver(Observer):
    """Observer that writes events to the ``offlinecache.events`` logger."""

    def __init__(self, name: str = "logging", log_level: int = logging.INFO):
        super().__init__(name)
        self.log_level = log_level
        self.logger = logging.getLogger(f"offlinecache.events.{name}")

    def handle_event(self, event: EventType) -> None:
        """Handle event by writing to log."""
        if isinstance(event, ErrorEvent):
            level = logging.WARNING
        elif isinstance(event, (CacheHitEvent, CacheMissEvent, RequestRoutedEvent)):
            level = logging.DEBUG  # Per-request events are verbose
        else:
            level = logging.INFO

        if level >= self.log_level:
            self.logger.log(level, self._format_event_message(event))

    def _format_event_message(self, event: EventType) -> str:
        """Format event as a log message."""
        base_info = f"[{event.event_type}] {event.event_id}"

        if isinstance(event, EntryStoredEvent):
            return f"{base_info} Stored {event.url} in {event.bucket} ({event.size} bytes)"
        if isinstance(event, EvictionEvent):
            return (f"{base_info} Evicted {event.entries_removed}/{event.entries_before} "
                    f"entries from {event.bucket}")
        if isinstance(event, ControlMessageEvent):
            status = "ok" if event.success else f"failed: {event.error_message}"
            return f"{base_info} {event.message_type} {event.correlation_id} {status}"
        if isinstance(event, ErrorEvent):
            return f"{base_info} {event.error_context}: {event.error_message}"

        url = event_url(event)
        return f"{base_info} {url}" if url else base_info


class StatisticsObserver(Observer):
    """Observer that aggregates hit/miss and storage counters."""

    def __init__(self, name: str = "statistics"):
        super().__init__(name)
        self.counts: Dict[str, int] = defaultdict(int)
        self.bytes_stored = 0
        self.hits_by_bucket: Dict[str, int] = defaultdict(int)

    def handle_event(self, event: EventType) -> None:
        self.counts[event.event_type] += 1
        if isinstance(event, CacheHitEvent):
            self.hits_by_bucket[event.bucket] += 1
        elif isinstance(event, EntryStoredEvent):
            self.bytes_stored += event.size

    @property
    def hit_rate(self) -> float:
        """Fraction of strategy lookups answered from storage."""
        hits = self.counts['CacheHitEvent']
        total = hits + self.counts['CacheMissEvent']
        return hits / total if total > 0 else 0.0

    def get_summary(self, bucket: Optional[str] = None) -> Dict[str, Any]:
        """Get aggregated statistics."""
        summary: Dict[str, Any] = {
            'events': dict(self.counts),
            'hit_rate': self.hit_rate,
            'bytes_stored': self.bytes_stored,
        }
        if bucket:
            summary['bucket_hits'] = self.hits_by_bucket.get(bucket, 0)
        return summary
