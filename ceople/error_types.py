"""
Centralized error types and messages.

Keeps the ``error`` event payload consistent across the WebSocket handler,
the matchmaking coordinator and the HTTP routes.
"""

from enum import Enum
from typing import Any


class ErrorType(Enum):
    """Standardized error types for consistent categorization."""

    # Authentication
    AUTHENTICATION_FAILED = "authentication_failed"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    GUESTS_DISABLED = "guests_disabled"

    # Validation
    INVALID_FORMAT = "invalid_format"
    INVALID_INPUT = "invalid_input"
    MESSAGE_TOO_LARGE = "message_too_large"
    UNKNOWN_EVENT = "unknown_event"

    # Matchmaking and rooms
    ALREADY_IN_ROOM = "already_in_room"
    NOT_IN_ROOM = "not_in_room"
    ROOM_NOT_FOUND = "room_not_found"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"

    # System
    DATABASE_ERROR = "database_error"
    INTERNAL_ERROR = "internal_error"
    MESSAGE_PROCESSING_ERROR = "message_processing_error"


class ErrorMessages:
    """Common error messages for consistent user experience."""

    AUTHENTICATION_REQUIRED = "Authentication required"
    INVALID_TOKEN = "Your session is invalid. Please sign in again."
    TOKEN_EXPIRED = "Your session has expired. Please sign in again."
    GUESTS_DISABLED = "Guest chat is not available right now"
    INVALID_GUEST_NAME = "Please choose a different display name"

    INVALID_FORMAT = "Invalid message format"
    MESSAGE_TOO_LARGE = "Message is too large"
    UNKNOWN_EVENT = "Unknown event type"

    ALREADY_IN_ROOM = "You are already chatting in another window"
    ROOM_NOT_FOUND = "Room not found"

    TOO_MANY_MESSAGES = "You are sending messages too quickly. Please slow down."

    INTERNAL_ERROR = "An internal error occurred"
    SYSTEM_UNAVAILABLE = "System temporarily unavailable"


def create_websocket_error_response(
    error_type: ErrorType,
    message: str,
    user_friendly: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Create the data payload of an ``error`` event.

    Args:
        error_type: The type of error
        message: Technical error message
        user_friendly: User-friendly error message (optional)
        details: Additional error details (optional)

    Returns:
        Error payload dictionary
    """
    return {
        "message": message,
        "error_type": error_type.value,
        "user_friendly": user_friendly or message,
        "details": details or {},
    }
