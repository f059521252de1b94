"""
Core OfflineCache Package

Contains core infrastructure components: configuration, events and
error handling.
"""

from offlinecache.core.exceptions import (
    OfflineCacheError,
    NetworkError,
    HttpError,
    StorageError,
    ProtocolError,
    CallerTimeoutError,
    ConfigurationError,
    ErrorCode,
    ErrorContext,
    RecoverySuggestion
)

__all__ = [
    'OfflineCacheError',
    'NetworkError',
    'HttpError',
    'StorageError',
    'ProtocolError',
    'CallerTimeoutError',
    'ConfigurationError',
    'ErrorCode',
    'ErrorContext',
    'RecoverySuggestion',
]
