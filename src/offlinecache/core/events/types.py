"""
Event Types for the OfflineCache Engine

Defines the event hierarchy for routing, strategy, storage, control
protocol and lifecycle activity so hosting applications can observe
the engine without coupling to it.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union


@dataclass
class BaseEvent:
    """
    Base class for all engine events.

    Provides common fields for event identification and timing.
    """
    timestamp: float = field(default_factory=time.time)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])

    @property
    def datetime(self) -> datetime:
        """Get event timestamp as datetime object."""
        return datetime.fromtimestamp(self.timestamp)

    @property
    def event_type(self) -> str:
        """Get the event type name."""
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            'event_type': self.event_type,
            'timestamp': self.timestamp,
            'event_id': self.event_id,
            'datetime': self.datetime.isoformat(),
            **{k: v for k, v in self.__dict__.items()
               if k not in ['timestamp', 'event_id']}
        }


@dataclass
class RequestRoutedEvent(BaseEvent):
    """Emitted when the router classifies an intercepted request."""
    url: str = ""
    strategy: str = ""  # 'cache_first', 'network_first', 'stale_while_revalidate', '' if passed through
    bucket: str = ""
    rule: str = ""
    intercepted: bool = True


@dataclass
class CacheHitEvent(BaseEvent):
    """Emitted when a strategy answers from a stored entry."""
    url: str = ""
    bucket: str = ""
    strategy: str = ""
    partial: bool = False  # served as a byte range


@dataclass
class CacheMissEvent(BaseEvent):
    """Emitted when a strategy finds no stored entry."""
    url: str = ""
    strategy: str = ""


@dataclass
class EntryStoredEvent(BaseEvent):
    """Emitted after a response is written into a bucket."""
    url: str = ""
    bucket: str = ""
    size: int = 0
    insertion_order: int = 0


@dataclass
class BucketDeletedEvent(BaseEvent):
    """Emitted when a whole bucket is deleted."""
    bucket: str = ""
    reason: str = ""  # 'clear', 'activate'


@dataclass
class EvictionEvent(BaseEvent):
    """Emitted when the eviction sweep trims a bucket."""
    bucket: str = ""
    size_before: int = 0
    entries_before: int = 0
    entries_removed: int = 0


@dataclass
class ControlMessageEvent(BaseEvent):
    """Emitted once a control message has been replied to."""
    message_type: str = ""
    correlation_id: str = ""
    success: bool = False
    cached_count: int = 0
    failed_count: int = 0
    error_message: str = ""


@dataclass
class LifecycleEvent(BaseEvent):
    """Emitted on lifecycle transitions."""
    state: str = ""
    previous_state: str = ""
    cached: List[str] = field(default_factory=list)
    deleted_buckets: List[str] = field(default_factory=list)


@dataclass
class ErrorEvent(BaseEvent):
    """
    Emitted when an error is logged and swallowed.

    Best-effort paths (install, eviction, background revalidation) report
    through this event instead of raising.
    """
    error_type: str = ""
    error_message: str = ""
    error_context: str = ""  # Where the error occurred
    url: str = ""
    bucket: str = ""
    recoverable: bool = True
    additional_info: Dict[str, Any] = field(default_factory=dict)


# Type alias for any event type
EventType = Union[
    BaseEvent,
    RequestRoutedEvent,
    CacheHitEvent,
    CacheMissEvent,
    EntryStoredEvent,
    BucketDeletedEvent,
    EvictionEvent,
    ControlMessageEvent,
    LifecycleEvent,
    ErrorEvent
]


# Event type registry for dynamic event handling
EVENT_TYPES = {
    'BaseEvent': BaseEvent,
    'RequestRoutedEvent': RequestRoutedEvent,
    'CacheHitEvent': CacheHitEvent,
    'CacheMissEvent': CacheMissEvent,
    'EntryStoredEvent': EntryStoredEvent,
    'BucketDeletedEvent': BucketDeletedEvent,
    'EvictionEvent': EvictionEvent,
    'ControlMessageEvent': ControlMessageEvent,
    'LifecycleEvent': LifecycleEvent,
    'ErrorEvent': ErrorEvent
}


def create_event_from_dict(event_data: Dict[str, Any]) -> EventType:
    """
    Create an event instance from a dictionary.

    Args:
        event_data: Dictionary containing event data with 'event_type' key

    Returns:
        Event instance of the appropriate type

    Raises:
        ValueError: If event_type is unknown or data is invalid
    """
    event_type = event_data.get('event_type')
    if not event_type:
        raise ValueError("Event data must contain 'event_type' field")

    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event_type}")

    event_class = EVENT_TYPES[event_type]
    event_kwargs = {k: v for k, v in event_data.items()
                    if k not in ['event_type', 'datetime']}

    try:
        return event_class(**event_kwargs)
    except TypeError as e:
        raise ValueError(f"Invalid data for {event_type}: {e}") from e


def event_url(event: EventType) -> Optional[str]:
    """Return the URL an event refers to, if any."""
    return getattr(event, 'url', None) or None
