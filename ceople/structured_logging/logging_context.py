"""
Context management utilities for structured logging.

Request and connection handlers bind identifiers here so every log entry
emitted while handling them carries the same context.
"""

import uuid
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def bind_request_context(
    correlation_id: str | None = None,
    user_id: str | None = None,
    connection_id: str | None = None,
    **kwargs: Any,
) -> str:
    """
    Bind request context to the current logging context.

    Args:
        correlation_id: Unique correlation ID for the request, generated if omitted
        user_id: User ID if available
        connection_id: WebSocket connection ID if available
        **kwargs: Additional context variables

    Returns:
        The correlation ID that was bound
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    context_vars = {
        "correlation_id": correlation_id,
        "user_id": user_id,
        "connection_id": connection_id,
        **kwargs,
    }
    bind_contextvars(**{k: v for k, v in context_vars.items() if v is not None})
    return correlation_id


def clear_request_context() -> None:
    """Clear the current request context from logging."""
    clear_contextvars()


def get_current_context() -> dict[str, Any]:
    """Get the current logging context."""
    return structlog.contextvars.get_contextvars()
