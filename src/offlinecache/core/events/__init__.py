"""
Event System for the OfflineCache Engine

Observer pattern implementation that lets hosting applications follow
routing, storage, control protocol and lifecycle activity.

Core components:
- Event types hierarchy for all engine operations
- EventEmitter for broadcasting with async support
- Standard observers for logging and statistics
"""

from offlinecache.core.events.types import (
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
)

from offlinecache.core.events.emitter import EventEmitter

from offlinecache.core.events.observers import (
    Observer,
    LoggingObserver,
    StatisticsObserver
)

__all__ = [
    # Event types
    'BaseEvent',
    'RequestRoutedEvent',
    'CacheHitEvent',
    'CacheMissEvent',
    'EntryStoredEvent',
    'BucketDeletedEvent',
    'EvictionEvent',
    'ControlMessageEvent',
    'LifecycleEvent',
    'ErrorEvent',

    # Event system
    'EventEmitter',

    # Observers
    'Observer',
    'LoggingObserver',
    'StatisticsObserver'
]
