"""
Connection lifecycle manager.

Tears down queue and room state on an explicit leave or an abrupt
disconnect. Both paths end in the same state: the user's queue entry is
gone, their room is ended, and the remaining member has been told.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ChatType, Connection
from .room_registry import Room, RoomRegistry
from .waiting_pool import WaitingPool

logger = get_logger(__name__)

SendEvent = Callable[..., Awaitable[bool]]
Requeue = Callable[[Connection, ChatType], Awaitable[Any]]
RoomEnded = Callable[[Room, str], None]


class LifecycleManager:
    """
    Leave and disconnect handling.

    Callers hold the connection manager's lock; this class never takes it.
    """

    def __init__(
        self,
        pool: WaitingPool,
        registry: RoomRegistry,
        send_event: SendEvent,
        *,
        requeue: Requeue | None = None,
        on_room_ended: RoomEnded | None = None,
        auto_requeue: bool = False,
    ) -> None:
        self.pool = pool
        self.registry = registry
        self._send_event = send_event
        self._requeue = requeue
        self._on_room_ended = on_room_ended
        self.auto_requeue = auto_requeue

    async def leave(self, connection: Connection, room_id: str | None = None, *, reason: str = "left") -> Room | None:
        """
        Remove the connection from the pool and end its room.

        Args:
            connection: The leaving member
            room_id: Room named by the client; a mismatch with the connection's
                current room makes this a no-op
            reason: Recorded as the room's end reason

        Returns:
            The room this call ended, or None if there was nothing to end
        """
        self.pool.dequeue(connection.user_id, connection.connection_id)

        current_room_id = connection.room_id
        if current_room_id is None:
            return None
        if room_id is not None and room_id != current_room_id:
            logger.debug(
                "Ignored leave for a room the connection is not in",
                user_id=connection.user_id,
                requested_room_id=room_id,
                current_room_id=current_room_id,
            )
            return None

        connection.room_id = None
        pending = self.registry.get(current_room_id)
        if pending is not None and pending.is_waiting:
            # Nobody has heard of this room yet; the announcing join-queue retries
            self.registry.discard(current_room_id)
            for member in pending.members.values():
                if member.room_id == current_room_id:
                    member.room_id = None
            logger.info("Member left before the match was announced", user_id=connection.user_id, room_id=current_room_id)
            return None

        room = self.registry.end(current_room_id, reason)
        if room is None:
            return None

        survivors = room.other_members(connection.user_id)
        for survivor in survivors:
            if survivor.room_id == room.room_id:
                survivor.room_id = None
            await self._send_event(survivor, "user-left", {"roomId": room.room_id}, room_id=room.room_id)

        if self._on_room_ended is not None:
            self._on_room_ended(room, connection.user_id)

        if self.auto_requeue and self._requeue is not None:
            for survivor in survivors:
                if survivor.is_open and not survivor.disconnected:
                    chat_type = room.requested_chat_types.get(survivor.user_id, room.chat_type)
                    logger.info("Re-queueing remaining member", user_id=survivor.user_id, room_id=room.room_id)
                    await self._requeue(survivor, chat_type)

        return room

    async def disconnect(self, connection: Connection) -> Room | None:
        """
        Clean up after a transport-level disconnect.

        Runs at most once per connection; later calls are no-ops.
        """
        if connection.disconnected:
            return None
        connection.disconnected = True
        connection.is_open = False
        room = await self.leave(connection, reason="disconnected")
        logger.info(
            "Connection cleaned up",
            user_id=connection.user_id,
            connection_id=connection.connection_id,
            room_id=room.room_id if room else None,
        )
        return room
