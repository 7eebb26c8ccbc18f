"""
Exception hierarchy for the relay server.

Only authentication failures and explicit queue/room failures reach the
client as an ``error`` event. Everything else is logged where it is raised
and absorbed by the caller.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """Contextual information attached to an error for logging."""

    user_id: str | None = None
    room_id: str | None = None
    connection_id: str | None = None
    event: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "user_id": self.user_id,
            "room_id": self.room_id,
            "connection_id": self.connection_id,
            "event": self.event,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class CeopleError(Exception):
    """
    Base exception for all relay server errors.

    Provides structured error handling with context and metadata. The error
    is logged once, when it is constructed.
    """

    log_level = "error"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        details: dict[str, Any] | None = None,
        user_friendly: str | None = None,
    ):
        """
        Initialize the error.

        Args:
            message: Technical error message
            context: Error context information
            details: Additional error details
            user_friendly: Message safe to show to the client
        """
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.details = details or {}
        self.user_friendly = user_friendly or message
        self.timestamp = datetime.now(UTC)

        self._log_error()

    def _log_error(self) -> None:
        log_method = getattr(logger, self.log_level)
        log_method(
            "Relay error occurred",
            error_type=self.__class__.__name__,
            message=self.message,
            context=self.context.to_dict(),
            details=self.details,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "user_friendly": self.user_friendly,
            "context": self.context.to_dict(),
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class AuthenticationError(CeopleError):
    """Bad, missing or expired credentials at handshake."""

    log_level = "warning"

    def __init__(self, message: str, context: ErrorContext | None = None, auth_type: str = "unknown", **kwargs):
        super().__init__(message, context, **kwargs)
        self.auth_type = auth_type
        self.details["auth_type"] = auth_type


class ProtocolViolation(CeopleError):
    """A client sent something it is not allowed to; the frame is dropped."""

    log_level = "warning"

    def __init__(self, message: str, context: ErrorContext | None = None, event: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.event = event
        if event:
            self.details["event"] = event


class ValidationError(CeopleError):
    """Inbound data validation errors."""

    log_level = "warning"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        field: str | None = None,  # pylint: disable=redefined-outer-name  # Reason: keyword mirrors the payload field name
        **kwargs,
    ):
        super().__init__(message, context, **kwargs)
        self.field = field
        if field:
            self.details["field"] = field


class ConfigurationError(CeopleError):
    """Configuration and setup errors."""

    def __init__(self, message: str, context: ErrorContext | None = None, config_key: str | None = None, **kwargs):
        super().__init__(message, context, **kwargs)
        self.config_key = config_key
        if config_key:
            self.details["config_key"] = config_key


class DatabaseError(CeopleError):
    """Audit store errors."""

    def __init__(self, message: str, context: ErrorContext | None = None, operation: str = "unknown", **kwargs):
        super().__init__(message, context, **kwargs)
        self.operation = operation
        self.details["operation"] = operation


def create_error_context(**kwargs) -> ErrorContext:
    """Create an error context with the given parameters."""
    return ErrorContext(**kwargs)
