"""
Tests for Configuration Models

Tests defaults, validators and derived values of the Pydantic models.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from offlinecache.core.config.models import (
    DEFAULT_APP_URLS, AppConfig, BucketConfig, EvictionConfig, NetworkConfig,
    PrecacheConfig, RoutingConfig, StorageConfig
)


class TestAppConfig:
    """Test AppConfig defaults and nesting."""

    def test_defaults(self):
        """Test default configuration values."""
        config = AppConfig()
        assert config.skip_waiting is True
        assert config.verbose is False
        assert config.routing.origin == "http://localhost:8000"
        assert config.routing.offline_fallback == "offline.html"
        assert config.eviction.max_bucket_size_mb == 50.0
        assert config.storage.backend == "memory"
        assert config.storage.directory == Path(".offlinecache")

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            AppConfig(unknown_option=True)

    def test_nested_dicts(self):
        config = AppConfig(routing={'origin': 'https://example.org'}, eviction={'max_bucket_size_mb': 10})
        assert config.routing.origin == "https://example.org"
        assert config.eviction.max_bucket_size_bytes == 10 * 1024 * 1024

    def test_validate_assignment(self):
        config = AppConfig()
        with pytest.raises(ValidationError):
            config.skip_waiting = "definitely"

    def test_lists_are_not_shared(self):
        first, second = PrecacheConfig(), PrecacheConfig()
        first.app_urls.append("extra.html")
        assert second.app_urls == DEFAULT_APP_URLS


class TestRoutingConfig:
    """Test RoutingConfig validation."""

    @pytest.mark.parametrize("origin,expected", [
        ("https://App.Test/some/path", "https://app.test"),
        ("http://localhost:8000/", "http://localhost:8000"),
    ])
    def test_origin_normalized(self, origin, expected):
        assert RoutingConfig(origin=origin).origin == expected

    @pytest.mark.parametrize("origin", ["app.test", "ftp://app.test", "/relative"])
    def test_origin_rejected(self, origin):
        with pytest.raises(ValidationError):
            RoutingConfig(origin=origin)

    def test_media_extensions_normalized(self):
        assert RoutingConfig(media_extensions=["MP4", ".Ogv"]).media_extensions == [".mp4", ".ogv"]

    def test_default_allow_list(self):
        assert "fonts.googleapis.com" in RoutingConfig().allowed_origins


class TestOtherModels:
    """Test remaining section models."""

    def test_bucket_full_name(self):
        assert BucketConfig(prefix="site").full_name("runtime") == "site-runtime"

    def test_bucket_empty_part_rejected(self):
        with pytest.raises(ValidationError):
            BucketConfig(prefix="  ")

    @pytest.mark.parametrize("value", [0, -1])
    def test_eviction_ceiling_positive(self, value):
        with pytest.raises(ValidationError):
            EvictionConfig(max_bucket_size_mb=value)

    def test_network_timeout_bounds(self):
        with pytest.raises(ValidationError):
            NetworkConfig(timeout=0.5)

    def test_storage_backend_choices(self):
        with pytest.raises(ValidationError):
            StorageConfig(backend="redis")
