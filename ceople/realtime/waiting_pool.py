"""
Waiting pool.

Users waiting for a partner, kept in insertion order so the earliest waiter
is served first. There is at most one entry per user identifier.
"""

import time
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ChatType, Connection

logger = get_logger(__name__)


@dataclass
class QueueEntry:
    """A user's pending match request."""

    user_id: str
    chat_type: ChatType
    connection: Connection
    enqueued_at: float = field(default_factory=time.time)

    def waited(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.enqueued_at


class WaitingPool:
    """
    In-memory FIFO of queue entries keyed by user identifier.

    Not thread-safe; callers serialize access through the connection
    manager's lock.
    """

    def __init__(self) -> None:
        self._entries: OrderedDict[str, QueueEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def get(self, user_id: str) -> QueueEntry | None:
        return self._entries.get(user_id)

    def entries(self) -> list[QueueEntry]:
        """Snapshot of queued entries, earliest first."""
        return list(self._entries.values())

    def enqueue(
        self, user_id: str, chat_type: ChatType, connection: Connection, now: float | None = None
    ) -> QueueEntry:
        """
        Insert a queue entry, replacing any existing entry for the user.

        A replaced entry loses its place; the new one goes to the back.
        """
        previous = self._entries.pop(user_id, None)
        if previous is not None:
            logger.debug(
                "Replaced stale queue entry",
                user_id=user_id,
                previous_connection_id=previous.connection.connection_id,
            )
        entry = QueueEntry(
            user_id=user_id,
            chat_type=chat_type,
            connection=connection,
            enqueued_at=now if now is not None else time.time(),
        )
        self._entries[user_id] = entry
        return entry

    def dequeue(self, user_id: str, connection_id: str | None = None) -> QueueEntry | None:
        """
        Remove the user's entry if present.

        When connection_id is given, only an entry owned by that connection is
        removed, so a closing connection never evicts a newer one.
        """
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if connection_id is not None and entry.connection.connection_id != connection_id:
            return None
        del self._entries[user_id]
        return entry

    def find_compatible(
        self, user_id: str, chat_type: ChatType, exclude: Iterable[str] = ()
    ) -> QueueEntry | None:
        """
        Return the earliest compatible entry belonging to another user.

        Args:
            user_id: The requesting user, never matched with themselves
            chat_type: The requested chat type
            exclude: Further user identifiers to pass over
        """
        excluded = set(exclude)
        for entry in self._entries.values():
            if entry.user_id == user_id or entry.user_id in excluded:
                continue
            if entry.chat_type.is_compatible(chat_type):
                return entry
        return None

    def expired(self, max_wait_seconds: float, now: float | None = None) -> list[QueueEntry]:
        """Entries that have waited longer than max_wait_seconds."""
        now = now if now is not None else time.time()
        return [entry for entry in self._entries.values() if entry.waited(now) > max_wait_seconds]
