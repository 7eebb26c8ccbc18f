"""
Pydantic-based configuration models for the relay server.

Each concern gets its own BaseSettings class with an environment prefix;
AppConfig aggregates them.
"""

import json
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


def _parse_env_list(candidate: Any) -> list[str]:
    """Parse a value from the environment as a JSON list or CSV."""
    if candidate is None:
        return []
    if isinstance(candidate, list | tuple):
        return [str(item).strip() for item in candidate if str(item).strip()]
    s = str(candidate).strip()
    if not s:
        return []
    try:
        loaded = json.loads(s)
        if isinstance(loaded, list):
            return [str(item).strip() for item in loaded if str(item).strip()]
    except json.JSONDecodeError:
        pass
    return [item.strip() for item in s.split(",") if item.strip()]


class ServerConfig(BaseSettings):
    """Server network configuration."""

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=3000, description="Server port")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1024 <= v <= 65535:
            logger.error("Invalid server port", port=v, valid_range="1024-65535")
            raise ValueError("Port must be between 1024 and 65535")
        return v

    model_config = {"env_prefix": "SERVER_", "case_sensitive": False, "extra": "ignore"}


class SecurityConfig(BaseSettings):
    """Identity and token verification settings."""

    jwt_secret: str | None = Field(default=None, description="Shared secret used to verify bearer tokens")
    jwt_algorithm: str = Field(default="HS256", description="Token signing algorithm")
    jwt_audience: str | None = Field(default=None, description="Expected token audience, if any")
    allow_guests: bool = Field(default=True, description="Accept unauthenticated guest connections")
    guest_name_max_length: int = Field(default=32, description="Maximum guest display name length")

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls, v: str | None) -> str | None:
        """Treat an empty secret as unset."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("guest_name_max_length")
    @classmethod
    def validate_guest_name_max_length(cls, v: int) -> int:
        """Validate the guest name limit is usable."""
        if not 1 <= v <= 256:
            raise ValueError("guest_name_max_length must be between 1 and 256")
        return v

    model_config = {"env_prefix": "CEOPLE_", "case_sensitive": False, "extra": "ignore"}


class MatchmakingConfig(BaseSettings):
    """Matchmaking and relay policy."""

    auto_requeue: bool = Field(default=False, description="Re-enqueue the remaining member when a partner leaves")
    max_wait_seconds: float = Field(default=0, description="Evict queue entries older than this (0 = unlimited)")
    sweep_interval_seconds: float = Field(default=5.0, description="Interval between max-wait sweeps")
    match_retry_limit: int = Field(default=1, description="Rollback retries when a matched partner is stale")
    max_messages_per_minute: int = Field(default=120, description="Relayed frames allowed per connection per minute")
    max_message_length: int = Field(default=2000, description="Maximum chat message length in characters")

    @field_validator("max_wait_seconds", "match_retry_limit")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        """Validate values that may be zero but not negative."""
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    @field_validator("sweep_interval_seconds", "max_messages_per_minute", "max_message_length")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate values that must be positive."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    model_config = {"env_prefix": "MATCHMAKING_", "case_sensitive": False, "extra": "ignore"}


class DatabaseConfig(BaseSettings):
    """Audit database configuration."""

    url: str | None = Field(default=None, description="Audit database URL; audit records are skipped when unset")
    echo: bool = Field(default=False, description="Echo SQL statements")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v: str | None) -> str | None:
        """Validate database URL uses a supported async driver."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            logger.error("Database URL validation failed - unsupported driver", url_preview=v.split("://", 1)[0])
            raise ValueError("Database URL must start with 'postgresql+asyncpg://' or 'sqlite+aiosqlite://'")
        return v

    model_config = {"env_prefix": "DATABASE_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str = Field(default="local", description="Logging environment")
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="human", description="Log format")
    disable_logging: bool = Field(default=False, description="Disable all logging")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate logging environment."""
        valid_environments = ["local", "unit_test", "e2e_test", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}, got '{v}'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got '{v}'")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "human"]
        if v not in valid_formats:
            raise ValueError(f"Log format must be one of {valid_formats}, got '{v}'")
        return v

    model_config = {"env_prefix": "LOGGING_", "case_sensitive": False, "extra": "ignore"}

    def to_dict(self) -> dict[str, Any]:
        """Return the dict shape expected by setup_enhanced_logging."""
        return {
            "environment": self.environment,
            "level": self.level,
            "format": self.format,
            "disable_logging": self.disable_logging,
        }


class CORSConfig(BaseSettings):
    """Cross-origin resource sharing configuration."""

    allow_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins permitted to access the API",
    )
    allow_credentials: bool = Field(default=True, description="Whether credentialed requests are accepted")
    allow_methods: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["GET", "POST", "OPTIONS"],
        description="HTTP methods permitted by CORS responses",
    )
    allow_headers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-Correlation-ID"],
        description="Request headers permitted by CORS responses",
    )
    max_age: int = Field(default=600, description="Seconds browsers may cache preflight responses")

    @field_validator("allow_origins", "allow_methods", "allow_headers", mode="before")
    @classmethod
    def parse_list(cls, value: object) -> list[str]:
        """Accept JSON lists or comma-separated strings."""
        return _parse_env_list(value)

    @field_validator("max_age")
    @classmethod
    def validate_max_age(cls, v: int) -> int:
        """Validate max_age is not negative."""
        if v < 0:
            raise ValueError("max_age must not be negative")
        return v

    model_config = {"env_prefix": "CORS_", "case_sensitive": False, "extra": "ignore"}


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    This is the main configuration class that aggregates all other configs.
    Access via the get_config() function.
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    matchmaking: MatchmakingConfig = Field(default_factory=MatchmakingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cors: CORSConfig = Field(default_factory=CORSConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}
