"""
Configuration Models

Pydantic models for type-safe configuration management with validation,
defaults, and field documentation.
"""

from pathlib import Path
from typing import Dict, List, Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_APP_URLS = [
    './',
    'index.html',
    'offline.html',
    'manifest.json',
    'css/style.css',
    'css/base.css',
    'css/cache-ui.css',
    'css/fonts.css',
    'css/theme-dark.css',
    'js/main.js',
    'pages/preferences.html',
    'pages/install.html',
    'pages/siga.html',
    'assets/fonts/Roboto-Regular-webfont.woff',
    'assets/fonts/Roboto-Medium-webfont.woff',
    'assets/fonts/Roboto-Thin-webfont.woff',
    'assets/fonts/Roboto-MediumItalic-webfont.woff',
    'assets/fonts/Roboto-ThinItalic-webfont.woff',
]

DEFAULT_ASSET_URLS = [
    'assets/icon-512.png',
    'favicon.ico',
    'logo.png',
]


class BucketConfig(BaseModel):
    """Bucket naming. Full names are ``{prefix}-{suffix}``."""

    prefix: str = Field(
        default="offlinecache",
        description="Prefix shared by every bucket name"
    )
    app: str = Field(
        default="app",
        description="Suffix of the persistent bucket for styles, scripts and fonts"
    )
    assets: str = Field(
        default="assets",
        description="Suffix of the persistent bucket for images"
    )
    runtime: str = Field(
        default="runtime",
        description="Suffix of the ephemeral runtime bucket"
    )
    pages: Dict[str, str] = Field(
        default_factory=lambda: {
            "siga": "page-siga",
            "install": "page-install",
        },
        description="Manual page buckets keyed by page id"
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator('prefix', 'app', 'assets', 'runtime')
    @classmethod
    def validate_name_part(cls, v):
        """Reject empty name parts."""
        v = v.strip()
        if not v:
            raise ValueError("Bucket name parts must not be empty")
        return v

    @model_validator(mode='after')
    def validate_unique_names(self):
        """Every bucket must end up with a distinct name."""
        suffixes = [self.app, self.assets, self.runtime, *self.pages.values()]
        if len(set(suffixes)) != len(suffixes):
            raise ValueError("Bucket suffixes must be unique")
        return self

    def full_name(self, suffix: str) -> str:
        """Build the full bucket name for a suffix."""
        return f"{self.prefix}-{suffix}"


class RoutingConfig(BaseModel):
    """Configuration for request classification."""

    origin: str = Field(
        default="http://localhost:8000",
        description="Origin of the hosting application; relative URLs resolve against it"
    )
    allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "fonts.googleapis.com",
            "youtube.com",
            "modelviewer.dev",
        ],
        description="Cross-origin hostnames (substring match) that are intercepted"
    )
    offline_fallback: str = Field(
        default="offline.html",
        description="Entry served to failed navigations when nothing else is cached"
    )
    media_extensions: List[str] = Field(
        default_factory=lambda: [".mp4", ".webm"],
        description="URL suffixes that get byte-range support on cache hits"
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator('origin')
    @classmethod
    def validate_origin(cls, v):
        """Origin must be an absolute http(s) URL."""
        parts = urlsplit(v)
        if parts.scheme not in ('http', 'https') or not parts.netloc:
            raise ValueError(f"Origin must be an absolute http(s) URL: {v}")
        return f"{parts.scheme}://{parts.netloc}".lower()

    @field_validator('media_extensions')
    @classmethod
    def validate_media_extensions(cls, v):
        """Normalize extensions to lowercase with leading dot."""
        return [ext.lower() if ext.startswith('.') else f".{ext.lower()}" for ext in v]


class PrecacheConfig(BaseModel):
    """Static manifest lists populated at install time."""

    app_urls: List[str] = Field(
        default_factory=lambda: list(DEFAULT_APP_URLS),
        description="URLs stored in the persistent app bucket on install"
    )
    asset_urls: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ASSET_URLS),
        description="URLs stored in the persistent asset bucket on install"
    )

    model_config = ConfigDict(extra="forbid")


class EvictionConfig(BaseModel):
    """Configuration for size-based eviction of ephemeral and page buckets."""

    enabled: bool = Field(
        default=True,
        description="Run the periodic eviction sweep"
    )
    max_bucket_size_mb: float = Field(
        default=50.0,
        gt=0,
        description="Size ceiling per bucket before the oldest half is evicted"
    )
    interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds between eviction sweeps"
    )

    model_config = ConfigDict(extra="forbid")

    @property
    def max_bucket_size_bytes(self) -> int:
        """Size ceiling in bytes."""
        return int(self.max_bucket_size_mb * 1024 * 1024)


class NetworkConfig(BaseModel):
    """Configuration for outgoing fetches."""

    timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds"
    )
    user_agent: str = Field(
        default="OfflineCache/0.1",
        description="User agent string for outgoing requests"
    )
    max_concurrent: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum simultaneous connections"
    )

    model_config = ConfigDict(extra="forbid")


class StorageConfig(BaseModel):
    """Configuration for the bucket storage backend."""

    backend: Literal["memory", "disk"] = Field(
        default="memory",
        description="Storage backend (memory, disk)"
    )
    directory: Path = Field(
        default=Path(".offlinecache"),
        description="Directory for the disk backend"
    )

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    """Root application configuration model."""

    version: str = Field(default="0.1.0", description="Configuration version")

    buckets: BucketConfig = Field(default_factory=BucketConfig, description="Bucket naming")
    routing: RoutingConfig = Field(default_factory=RoutingConfig, description="Request routing")
    precache: PrecacheConfig = Field(default_factory=PrecacheConfig, description="Install manifests")
    eviction: EvictionConfig = Field(default_factory=EvictionConfig, description="Eviction sweep")
    network: NetworkConfig = Field(default_factory=NetworkConfig, description="Network fetches")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage backend")

    skip_waiting: bool = Field(
        default=True,
        description="Activate immediately after install"
    )
    verbose: bool = Field(
        default=False,
        description="Enable verbose logging output"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with detailed logging"
    )

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
    )
