"""
Core Exception Hierarchy for OfflineCache

Provides error classification with error codes, recovery suggestions,
and context information for the cache engine, its storage backends
and the control protocol.
"""

import time
import traceback
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Standard error codes for different error categories."""

    # Network related errors (1000-1999)
    NETWORK_CONNECTION_FAILED = 1001
    NETWORK_TIMEOUT = 1002
    NETWORK_HTTP_ERROR = 1003

    # Storage errors (2000-2999)
    STORAGE_OPEN_FAILED = 2001
    STORAGE_WRITE_FAILED = 2002
    STORAGE_READ_FAILED = 2003
    STORAGE_DELETE_FAILED = 2004
    STORAGE_CORRUPT_ENTRY = 2005

    # Configuration errors (3000-3999)
    CONFIG_INVALID_FORMAT = 3001
    CONFIG_INVALID_VALUE = 3002
    CONFIG_FILE_NOT_FOUND = 3003
    CONFIG_SCHEMA_VALIDATION = 3004

    # Control protocol errors (4000-4999)
    PROTOCOL_INVALID_MESSAGE = 4001
    PROTOCOL_INVALID_URLS = 4002
    PROTOCOL_UNKNOWN_PAGE = 4003
    PROTOCOL_UNKNOWN_TYPE = 4004
    PROTOCOL_DUPLICATE_REPLY = 4005
    PROTOCOL_CALLER_TIMEOUT = 4006

    # Generic/unknown errors (9000-9999)
    UNKNOWN_ERROR = 9000
    INTERNAL_ERROR = 9001


@dataclass
class ErrorContext:
    """Contextual information about an error occurrence."""

    operation: str = ""
    url: Optional[str] = None
    bucket: Optional[str] = None
    message_type: Optional[str] = None
    correlation_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    user_context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary for serialization."""
        return {
            'operation': self.operation,
            'url': self.url,
            'bucket': self.bucket,
            'message_type': self.message_type,
            'correlation_id': self.correlation_id,
            'timestamp': self.timestamp,
            'user_context': self.user_context
        }


@dataclass
class RecoverySuggestion:
    """Structured recovery suggestion for error resolution."""

    action: str  # Brief action description
    description: str  # Detailed explanation
    automatic: bool = False  # Whether the engine recovers on its own
    command: Optional[str] = None  # CLI command to resolve
    priority: int = 1  # Priority order (1=highest)

    def to_dict(self) -> Dict[str, Any]:
        """Convert suggestion to dictionary."""
        return {
            'action': self.action,
            'description': self.description,
            'automatic': self.automatic,
            'command': self.command,
            'priority': self.priority
        }


class OfflineCacheError(Exception):
    """
    Base exception for all OfflineCache errors.

    Carries an error code, recovery suggestions and context so that
    callers on either side of the control channel can report failures
    consistently.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
        suggestions: Optional[List[RecoverySuggestion]] = None
    ):
        """
        Initialize OfflineCache error.

        Args:
            message: Human-readable error description
            error_code: Standardized error code
            context: Contextual information about the error
            cause: Original exception that caused this error
            recoverable: Whether the error can potentially be recovered
            suggestions: List of recovery suggestions
        """
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.context = context or ErrorContext()
        self.cause = cause
        self.recoverable = recoverable
        self.suggestions = suggestions or []
        self.stack_trace = traceback.format_exc()

        # Auto-generate correlation ID if not provided
        if not self.context.correlation_id:
            self.context.correlation_id = str(uuid.uuid4())[:8]

    def add_suggestion(self, suggestion: RecoverySuggestion) -> None:
        """Add a recovery suggestion to the error."""
        self.suggestions.append(suggestion)
        self.suggestions.sort(key=lambda s: s.priority)

    def get_debug_info(self) -> Dict[str, Any]:
        """Get comprehensive debug information."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'error_code': self.error_code.value,
            'recoverable': self.recoverable,
            'context': self.context.to_dict(),
            'cause': {
                'type': type(self.cause).__name__ if self.cause else None,
                'message': str(self.cause) if self.cause else None
            },
            'suggestions': [s.to_dict() for s in self.suggestions],
            'stack_trace': self.stack_trace
        }


class NetworkError(OfflineCacheError):
    """Exception for fetches that were rejected or errored."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext()
        if url:
            context.url = url
        if status_code is not None:
            context.user_context['status_code'] = status_code

        kwargs['context'] = context
        kwargs['error_code'] = error_code

        super().__init__(message, **kwargs)
        self.url = url
        self.status_code = status_code

        if error_code in (ErrorCode.NETWORK_CONNECTION_FAILED, ErrorCode.NETWORK_TIMEOUT):
            self.add_suggestion(RecoverySuggestion(
                action="Check network connection",
                description="The resource could not be fetched. Cached copies are served where available.",
                automatic=True,
                priority=1
            ))


class HttpError(NetworkError):
    """Exception for non-2xx responses that were not cached."""

    def __init__(self, message: str, status_code: int, url: Optional[str] = None, **kwargs):
        kwargs['error_code'] = ErrorCode.NETWORK_HTTP_ERROR
        super().__init__(message, url=url, status_code=status_code, **kwargs)


class StorageError(OfflineCacheError):
    """Exception for rejected bucket open/write/delete operations."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        bucket: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext()
        if bucket:
            context.bucket = bucket

        kwargs['context'] = context
        kwargs['error_code'] = error_code

        super().__init__(message, **kwargs)
        self.bucket = bucket

        if error_code == ErrorCode.STORAGE_CORRUPT_ENTRY:
            self.add_suggestion(RecoverySuggestion(
                action="Clear the affected bucket",
                description="A stored entry could not be read back. Clearing the bucket removes it.",
                command=f"offlinecache clear --bucket {bucket}" if bucket else "offlinecache clear",
                priority=1
            ))


class ProtocolError(OfflineCacheError):
    """Exception for malformed control messages."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.PROTOCOL_INVALID_MESSAGE,
        message_type: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext()
        if message_type:
            context.message_type = message_type

        kwargs['context'] = context
        kwargs['error_code'] = error_code
        kwargs.setdefault('recoverable', False)

        super().__init__(message, **kwargs)


class CallerTimeoutError(OfflineCacheError):
    """Raised by the caller side when a control reply does not arrive in time."""

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        context = kwargs.get('context') or ErrorContext()
        if timeout is not None:
            context.user_context['timeout'] = timeout

        kwargs['context'] = context
        kwargs['error_code'] = ErrorCode.PROTOCOL_CALLER_TIMEOUT

        super().__init__(message, **kwargs)
        self.timeout = timeout


class ConfigurationError(OfflineCacheError):
    """Exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIG_INVALID_VALUE,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs
    ):
        context = kwargs.get('context') or ErrorContext()
        if config_key:
            context.user_context['config_key'] = config_key
            context.user_context['config_value'] = config_value

        kwargs['context'] = context
        kwargs['error_code'] = error_code
        kwargs.setdefault('recoverable', False)

        super().__init__(message, **kwargs)

        if error_code == ErrorCode.CONFIG_FILE_NOT_FOUND:
            self.add_suggestion(RecoverySuggestion(
                action="Create configuration file",
                description="Create offlinecache.yaml in the working directory or pass --config.",
                command="offlinecache init-config",
                priority=1
            ))
        elif error_code in (ErrorCode.CONFIG_INVALID_VALUE, ErrorCode.CONFIG_SCHEMA_VALIDATION):
            self.add_suggestion(RecoverySuggestion(
                action="Check configuration values",
                description="Review the configuration file for invalid values and correct them.",
                priority=1
            ))

