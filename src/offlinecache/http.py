"""
Request and Response Models

Plain descriptors for the interception boundary. A ``Request`` carries
what the router needs to classify it (method, URL, destination, mode);
a ``Response`` carries status, headers and the full body so it can be
stored, cloned and replayed.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit


NAVIGATE = "navigate"

# Request destinations the router distinguishes
DESTINATION_STYLE = "style"
DESTINATION_SCRIPT = "script"
DESTINATION_FONT = "font"
DESTINATION_IMAGE = "image"


def normalize_url(url: str, base: Optional[str] = None) -> str:
    """
    Normalize a URL into a request identity.

    Relative URLs are resolved against ``base``; scheme and host are
    lower-cased, the fragment is dropped and an empty path becomes ``/``.

    Args:
        url: Absolute or relative URL
        base: Origin or URL to resolve relative URLs against

    Returns:
        Normalized absolute URL
    """
    if base:
        url = urljoin(base if base.endswith('/') else f"{base}/", url)
    parts = urlsplit(url)
    path = parts.path or '/'
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ''))


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for an absolute URL."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


class Headers(dict):
    """Case-insensitive header mapping; keys are stored lower-cased."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        super().__init__()
        for key, value in (data or {}).items():
            self[key] = value

    def __setitem__(self, key: str, value: str) -> None:
        super().__setitem__(key.lower(), str(value))

    def __getitem__(self, key: str) -> str:
        return super().__getitem__(key.lower())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and super().__contains__(key.lower())

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return super().get(key.lower(), default)

    def copy(self) -> 'Headers':
        return Headers(self)


@dataclass
class Request:
    """An intercepted request descriptor."""

    url: str
    method: str = "GET"
    destination: str = ""
    mode: str = "no-cors"
    headers: Headers = field(default_factory=Headers)

    def __post_init__(self):
        self.method = self.method.upper()
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    @property
    def key(self) -> str:
        """Normalized request identity used as the storage key."""
        return normalize_url(self.url)

    @property
    def origin(self) -> str:
        return origin_of(self.url)

    @property
    def hostname(self) -> str:
        return (urlsplit(self.url).hostname or '').lower()

    @property
    def is_navigation(self) -> bool:
        return self.mode == NAVIGATE

    @classmethod
    def for_url(cls, url: str, base: Optional[str] = None, **kwargs) -> 'Request':
        """Build a GET request for a possibly relative URL."""
        return cls(url=normalize_url(url, base), **kwargs)


@dataclass
class Response:
    """A complete HTTP response with its body in memory."""

    status: int = 200
    body: bytes = b""
    headers: Headers = field(default_factory=Headers)
    url: str = ""
    status_text: str = ""

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    @property
    def ok(self) -> bool:
        """True for 2xx statuses."""
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        return self.headers.get('content-type', '') or ''

    @property
    def content_length(self) -> Optional[int]:
        """Declared Content-Length, or None when absent or malformed."""
        value = self.headers.get('content-length')
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def clone(self) -> 'Response':
        """Independent copy; storing a clone never aliases the caller's object."""
        return replace(self, headers=self.headers.copy())

    @classmethod
    def empty(cls, status: int, url: str = "") -> 'Response':
        """Bodyless response, e.g. the image placeholder."""
        return cls(status=status, body=b"", url=url)
