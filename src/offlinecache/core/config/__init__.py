"""
Configuration Management Package

Provides Pydantic-based configuration models and management for OfflineCache.
"""

from offlinecache.core.config.models import (
    AppConfig,
    BucketConfig,
    RoutingConfig,
    PrecacheConfig,
    EvictionConfig,
    NetworkConfig,
    StorageConfig,
)
from offlinecache.core.config.manager import ConfigManager

__all__ = [
    "AppConfig",
    "BucketConfig",
    "RoutingConfig",
    "PrecacheConfig",
    "EvictionConfig",
    "NetworkConfig",
    "StorageConfig",
    "ConfigManager",
]
