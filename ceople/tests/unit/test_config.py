"""
Tests for configuration models.
"""

import pytest
from pydantic import ValidationError

from ...config import get_config
from ...config.models import (
    CORSConfig,
    DatabaseConfig,
    LoggingConfig,
    MatchmakingConfig,
    SecurityConfig,
    ServerConfig,
)


class TestServerConfig:
    """Test cases for ServerConfig."""

    def test_port_from_environment(self, monkeypatch):
        """Test SERVER_PORT is read from the environment."""
        monkeypatch.setenv("SERVER_PORT", "4000")

        assert ServerConfig().port == 4000

    def test_privileged_port_rejected(self):
        """Test ports below 1024 are refused."""
        with pytest.raises(ValidationError):
            ServerConfig(port=80)


class TestMatchmakingConfig:
    """Test cases for MatchmakingConfig."""

    def test_defaults(self, monkeypatch):
        """Test auto-requeue is off and waiting is unbounded by default."""
        for name in ("MATCHMAKING_AUTO_REQUEUE", "MATCHMAKING_MAX_WAIT_SECONDS"):
            monkeypatch.delenv(name, raising=False)

        config = MatchmakingConfig()

        assert config.auto_requeue is False
        assert config.max_wait_seconds == 0
        assert config.match_retry_limit == 1

    def test_auto_requeue_from_environment(self, monkeypatch):
        """Test booleans parse from the environment."""
        monkeypatch.setenv("MATCHMAKING_AUTO_REQUEUE", "true")

        assert MatchmakingConfig().auto_requeue is True

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_wait_seconds": -1}, {"sweep_interval_seconds": 0}, {"max_message_length": 0}],
    )
    def test_invalid_values(self, kwargs):
        """Test negative and zero limits are refused where meaningless."""
        with pytest.raises(ValidationError):
            MatchmakingConfig(**kwargs)


class TestSecurityConfig:
    """Test cases for SecurityConfig."""

    def test_blank_secret_is_unset(self):
        """Test an empty secret disables token mode instead of signing with ''."""
        assert SecurityConfig(jwt_secret="  ").jwt_secret is None

    def test_guest_name_limit_bounds(self):
        """Test the guest name limit must be usable."""
        with pytest.raises(ValidationError):
            SecurityConfig(guest_name_max_length=0)


class TestDatabaseConfig:
    """Test cases for DatabaseConfig."""

    def test_async_drivers_accepted(self):
        """Test asyncpg and aiosqlite URLs are valid."""
        assert DatabaseConfig(url="sqlite+aiosqlite:///:memory:").url == "sqlite+aiosqlite:///:memory:"
        assert DatabaseConfig(url="postgresql+asyncpg://u:p@db/ceople").url.startswith("postgresql+asyncpg")

    def test_sync_driver_rejected(self):
        """Test a blocking driver URL is refused."""
        with pytest.raises(ValidationError):
            DatabaseConfig(url="postgresql://u:p@db/ceople")

    def test_blank_url_disables_audit(self):
        """Test an empty URL means no audit store."""
        assert DatabaseConfig(url="").url is None


class TestLoggingAndCORS:
    """Test cases for logging and CORS settings."""

    def test_level_is_normalized(self):
        """Test log levels are upper-cased."""
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_format(self):
        """Test unknown log formats are refused."""
        with pytest.raises(ValidationError):
            LoggingConfig(format="xml")

    def test_cors_origins_from_csv(self, monkeypatch):
        """Test comma-separated origins are split."""
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example")

        assert CORSConfig().allow_origins == ["https://a.example", "https://b.example"]

    def test_cors_origins_from_json(self, monkeypatch):
        """Test JSON list origins are accepted."""
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", '["https://a.example"]')

        assert CORSConfig().allow_origins == ["https://a.example"]


class TestGetConfig:
    """Test cases for the config accessor."""

    def test_fresh_instance_under_tests(self):
        """Test environment changes are visible between tests."""
        assert get_config() is not get_config()
