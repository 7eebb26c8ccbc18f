"""
Event envelope utilities for outbound WebSocket frames.

Every event sent to a client uses one schema:
- event_type: str
- timestamp: ISO 8601 UTC with 'Z'
- sequence_number: int (monotonic per process)
- room_id: optional
- data: dict payload
"""

from __future__ import annotations

import itertools
import threading
from datetime import UTC, datetime
from typing import Any

_global_sequence = itertools.count(1)
_sequence_lock = threading.Lock()


def _get_next_global_sequence() -> int:
    with _sequence_lock:
        return next(_global_sequence)


def utc_now_z() -> str:
    """Return current UTC time in ISO 8601 format with 'Z' suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_event(
    event_type: str,
    data: dict[str, Any] | None = None,
    *,
    room_id: str | None = None,
    sequence_number: int | None = None,
    connection_manager=None,
) -> dict[str, Any]:
    """
    Create a normalized event envelope.

    Args:
        event_type: Type of event
        data: Event data payload
        room_id: Optional room ID for room-scoped events
        sequence_number: Optional explicit sequence number
        connection_manager: Optional ConnectionManager providing the sequence counter

    If sequence_number is not provided the connection manager's counter is
    used, falling back to a module-level counter.
    """
    if sequence_number is not None:
        seq = sequence_number
    elif connection_manager is not None:
        seq = connection_manager._get_next_sequence()  # noqa: SLF001
    else:
        seq = _get_next_global_sequence()
    event: dict[str, Any] = {
        "event_type": event_type,
        "timestamp": utc_now_z(),
        "sequence_number": seq,
        "data": data or {},
    }
    if room_id is not None:
        event["room_id"] = room_id
    return event
