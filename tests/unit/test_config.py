"""Unit tests for HaloSync configuration management.

Tests AppConfig loading from environment variables, validation, and defaults.
"""

from __future__ import annotations

import pytest

from halosync.config import AppConfig, get_config, reset_config


class TestAppConfig:
    """Test AppConfig creation and validation."""

    def test_from_env_requires_database_url(self, monkeypatch):
        """Test DATABASE_URL is required."""
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(KeyError) as exc_info:
            AppConfig.from_env()

        assert "DATABASE_URL" in str(exc_info.value)

    def test_from_env_with_minimal_config(self, monkeypatch):
        """Test loading with only required env vars."""
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = AppConfig.from_env()

        assert config.db.url == "sqlite+aiosqlite:///./test.db"
        assert config.log_level == "INFO"
        assert config.json_logs is False

    def test_psa_defaults(self):
        config = AppConfig.from_env()

        assert config.psa.http_timeout == 30.0
        assert config.psa.default_page_size == 100
        assert config.psa.token_scope == "all"
        assert config.psa.token_expiry_margin_seconds == 60

    def test_sync_defaults(self):
        config = AppConfig.from_env()

        assert config.sync.top_clients == 20
        assert config.sync.agent_limit == 50
        assert config.sync.team_limit == 20
        assert config.sync.stale_after_hours == 24

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("HALO_HTTP_TIMEOUT", "12.5")
        monkeypatch.setenv("HALO_DEFAULT_PAGE_SIZE", "25")
        monkeypatch.setenv("CACHE_ENABLED", "false")
        monkeypatch.setenv("CACHE_MAX_SIZE", "10")
        monkeypatch.setenv("SYNC_TOP_CLIENTS", "5")
        monkeypatch.setenv("SYNC_STALE_AFTER_HOURS", "6")
        monkeypatch.setenv("JSON_LOGS", "TRUE")

        config = AppConfig.from_env()

        assert config.psa.http_timeout == 12.5
        assert config.psa.default_page_size == 25
        assert config.cache.enabled is False
        assert config.cache.max_size == 10
        assert config.sync.top_clients == 5
        assert config.sync.stale_after_hours == 6
        assert config.json_logs is True

    def test_invalid_integer_raises(self, monkeypatch):
        monkeypatch.setenv("SYNC_AGENT_LIMIT", "many")

        with pytest.raises(ValueError):
            AppConfig.from_env()


class TestGetConfig:
    """Test the lazily-loaded singleton."""

    def test_singleton(self):
        assert get_config() is get_config()

    def test_reset_rereads_environment(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        reset_config()

        second = get_config()
        assert second is not first
        assert second.log_level == "DEBUG"
