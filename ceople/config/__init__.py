"""
Configuration module for the relay server.

Usage:
    from ceople.config import get_config

    config = get_config()
    logger.info("Configuration loaded", host=config.server.host, port=config.server.port)
"""

import sys
import threading
from functools import lru_cache
from os import getenv

from .models import (
    AppConfig,
    CORSConfig,
    DatabaseConfig,
    LoggingConfig,
    MatchmakingConfig,
    SecurityConfig,
    ServerConfig,
)

__all__ = [
    "AppConfig",
    "CORSConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "MatchmakingConfig",
    "SecurityConfig",
    "ServerConfig",
    "get_config",
    "reset_config",
]

_config_instance: AppConfig | None = None
_config_lock = threading.Lock()


def _is_test_mode() -> bool:
    """Detect if running under pytest."""
    if "pytest" in sys.modules:
        return True
    return bool(getenv("PYTEST_CURRENT_TEST"))


@lru_cache(maxsize=1)
def _get_config_cached() -> AppConfig:
    global _config_instance  # pylint: disable=global-statement  # Reason: process-wide singleton
    with _config_lock:
        if _config_instance is None:
            _config_instance = AppConfig()
    return _config_instance


def get_config() -> AppConfig:
    """
    Get application configuration (singleton in production, fresh in tests).

    Configuration is loaded from environment variables and .env file.

    Raises:
        ValidationError: If configuration is invalid
    """
    if _is_test_mode():
        return AppConfig()
    return _get_config_cached()


def reset_config() -> None:
    """Reset the configuration cache so the next get_config() reloads it."""
    global _config_instance  # pylint: disable=global-statement  # Reason: process-wide singleton
    with _config_lock:
        _get_config_cached.cache_clear()
        _config_instance = None
