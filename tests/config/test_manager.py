"""
Tests for Configuration Manager

Tests the ConfigManager class for hierarchical configuration loading,
validation, and CLI integration.
"""

import json
from pathlib import Path

import pytest
import yaml

from offlinecache.core.config.manager import ConfigManager
from offlinecache.core.config.models import AppConfig
from offlinecache.core.exceptions import ConfigurationError, ErrorCode


@pytest.fixture
def manager(monkeypatch):
    """Manager that never finds a config file on the search path."""
    manager = ConfigManager()
    monkeypatch.setattr(manager, '_config_paths', [])
    return manager


class TestConfigManager:
    """Test ConfigManager basic functionality."""

    def test_init_default(self):
        """Test ConfigManager initialization with defaults."""
        manager = ConfigManager()
        assert manager.config_file is None
        assert manager.config is None
        assert any(p.name == "offlinecache.yaml" for p in manager._config_paths)

    def test_load_defaults_only(self, manager):
        config = manager.load_config()
        assert isinstance(config, AppConfig)
        assert manager.config is config

    def test_yaml_file(self, tmp_path):
        config_file = tmp_path / "cache.yaml"
        config_file.write_text(yaml.safe_dump({
            'routing': {'origin': 'https://site.test'},
            'eviction': {'max_bucket_size_mb': 5},
        }))

        config = ConfigManager(config_file).load_config()

        assert config.routing.origin == "https://site.test"
        assert config.eviction.max_bucket_size_mb == 5

    def test_json_file(self, tmp_path):
        config_file = tmp_path / "cache.json"
        config_file.write_text(json.dumps({'buckets': {'prefix': 'json'}}))

        assert ConfigManager(config_file).load_config().buckets.prefix == "json"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(tmp_path / "nope.yaml").load_config()
        assert exc_info.value.error_code == ErrorCode.CONFIG_FILE_NOT_FOUND

    @pytest.mark.parametrize("content", ["routing: [unclosed", "- just\n- a list\n"])
    def test_invalid_file(self, tmp_path, content):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text(content)

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(config_file).load_config()
        assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID_FORMAT

    def test_schema_violation(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text(yaml.safe_dump({'storage': {'backend': 'tape'}}))

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager(config_file).load_config()
        assert exc_info.value.error_code == ErrorCode.CONFIG_SCHEMA_VALIDATION


class TestPrecedence:
    """Test source precedence: CLI > environment > file > defaults."""

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "cache.yaml"
        config_file.write_text(yaml.safe_dump({'routing': {'origin': 'https://file.test', 'offline_fallback': 'off.html'}}))
        monkeypatch.setenv("OFFLINECACHE_ORIGIN", "https://env.test")

        config = ConfigManager(config_file).load_config()

        assert config.routing.origin == "https://env.test"
        assert config.routing.offline_fallback == "off.html"

    def test_cli_overrides_env(self, manager, monkeypatch):
        monkeypatch.setenv("OFFLINECACHE_TIMEOUT", "12")
        monkeypatch.setenv("OFFLINECACHE_VERBOSE", "yes")

        config = manager.load_config(cli_args={'timeout': 20.0, 'verbose': None})

        assert config.network.timeout == 20.0
        assert config.verbose is True

    def test_env_parsing(self, manager, monkeypatch):
        monkeypatch.setenv("OFFLINECACHE_ALLOWED_ORIGINS", "a.test, b.test,")
        monkeypatch.setenv("OFFLINECACHE_SKIP_WAITING", "false")
        monkeypatch.setenv("OFFLINECACHE_STORAGE_DIR", "/tmp/oc")

        config = manager.load_config()

        assert config.routing.allowed_origins == ["a.test", "b.test"]
        assert config.skip_waiting is False
        assert config.storage.directory == Path("/tmp/oc")

    def test_invalid_env_number(self, manager, monkeypatch):
        monkeypatch.setenv("OFFLINECACHE_MAX_BUCKET_SIZE_MB", "big")

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load_config()
        assert exc_info.value.context.user_context['config_key'] == "OFFLINECACHE_MAX_BUCKET_SIZE_MB"

    def test_cli_mappings(self, manager, tmp_path):
        config = manager.load_config(cli_args={
            'storage_dir': tmp_path,
            'backend': 'disk',
            'origin': 'https://cli.test',
            'max_size_mb': 2,
            'unrelated': 'ignored',
        })

        assert config.storage.directory == tmp_path
        assert config.storage.backend == "disk"
        assert config.routing.origin == "https://cli.test"
        assert config.eviction.max_bucket_size_mb == 2


def test_create_example_config(tmp_path):
    output = tmp_path / "example.yaml"
    ConfigManager().create_example_config(output)

    data = yaml.safe_load(output.read_text())
    assert AppConfig(**data) == AppConfig()
