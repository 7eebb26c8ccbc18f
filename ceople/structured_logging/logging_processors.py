"""
Logging processors for structlog event processing.

This module provides processors for sanitizing sensitive data and adding
correlation IDs to log entries.
"""

import re
import uuid
from typing import Any

# Matches whole words or specific suffixes so fields such as "room_id" survive
SENSITIVE_PATTERNS = [
    r"\bpassword\b",
    r"\btoken\b",
    r"\bsecret\b",
    r"_key\b",
    r"^key$",
    r"\bcredential\b",
    r"\bjwt\b",
    r"\bbearer\b",
    r"\bauthorization\b",
    r"\bsdp\b",
]

# SDP and ICE candidates carry network addresses, never log them verbatim
SENSITIVE_VALUE_FIELDS = {"signal", "candidate"}


def sanitize_sensitive_data(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Remove sensitive data from log entries.

    Credentials and raw signaling payloads are replaced with "[REDACTED]".

    Args:
        _logger: Logger instance (unused)
        _name: Logger name (unused)
        event_dict: Event dictionary to sanitize

    Returns:
        Sanitized event dictionary
    """

    def sanitize_dict(d: dict[str, Any]) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for key, value in d.items():
            key_lower = str(key).lower()
            if key_lower in SENSITIVE_VALUE_FIELDS:
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = sanitize_dict(value)
            elif any(re.search(pattern, key_lower) for pattern in SENSITIVE_PATTERNS):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = value
        return sanitized

    return sanitize_dict(event_dict)


def add_correlation_id(_logger: Any, _name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add a correlation ID to log entries that were not bound to a request."""
    if "correlation_id" not in event_dict:
        event_dict["correlation_id"] = str(uuid.uuid4())
    return event_dict
