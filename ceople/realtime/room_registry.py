"""
Room registry.

Owns every room the process has created and the active-room index per user.
Room status only moves forward (waiting, active, ended); an ended room is kept for
a while for statistics and then pruned, never reactivated.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ChatType, Connection, RoomStatus

logger = get_logger(__name__)

RECENT_WINDOW = timedelta(hours=24)


@dataclass
class Room:
    """A matched conversation."""

    room_id: str
    chat_type: ChatType
    members: dict[str, Connection]
    requested_chat_types: dict[str, ChatType]
    initiator_id: str
    status: RoomStatus = RoomStatus.ACTIVE
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    ended_at: datetime | None = None
    end_reason: str | None = None
    message_count: int = 0

    @property
    def is_active(self) -> bool:
        return self.status is RoomStatus.ACTIVE

    @property
    def is_waiting(self) -> bool:
        return self.status is RoomStatus.WAITING

    @property
    def member_ids(self) -> set[str]:
        return set(self.members)

    def is_initiator(self, user_id: str) -> bool:
        return user_id == self.initiator_id

    def other_members(self, user_id: str) -> list[Connection]:
        return [conn for uid, conn in self.members.items() if uid != user_id]

    def next_message_sequence(self) -> int:
        self.message_count += 1
        return self.message_count


class RoomRegistry:
    """Active and recently ended rooms."""

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}
        self._active_by_user: dict[str, str] = {}
        self._total_created = 0
        self._total_participants = 0

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def create(
        self,
        members: Sequence[Connection],
        chat_type: ChatType,
        *,
        initiator_id: str,
        requested_chat_types: dict[str, ChatType] | None = None,
        status: RoomStatus = RoomStatus.ACTIVE,
    ) -> Room:
        """
        Create a room for the given member connections.

        The matchmaker creates rooms as WAITING until both members have been
        told; a WAITING room already counts as each member's active room.

        Raises:
            ValueError: If a member is already in an active room, members
                repeat a user identifier, or the initiator is not a member
        """
        member_map = {conn.user_id: conn for conn in members}
        if len(member_map) != len(members) or len(member_map) < 2:
            raise ValueError("A room needs at least two distinct users")
        if initiator_id not in member_map:
            raise ValueError("Initiator must be a room member")
        for user_id in member_map:
            if user_id in self._active_by_user:
                raise ValueError(f"User {user_id} is already in an active room")

        room = Room(
            room_id=str(uuid.uuid4()),
            chat_type=chat_type,
            members=member_map,
            requested_chat_types=dict(requested_chat_types or {}),
            initiator_id=initiator_id,
            status=status,
        )
        self._rooms[room.room_id] = room
        for user_id in member_map:
            self._active_by_user[user_id] = room.room_id
        self._total_created += 1
        self._total_participants += len(member_map)

        logger.info(
            "Room created",
            room_id=room.room_id,
            chat_type=chat_type.value,
            members=list(member_map),
            initiator_id=initiator_id,
        )
        return room

    def activate(self, room_id: str) -> bool:
        """Move a WAITING room to ACTIVE once its match has been announced."""
        room = self._rooms.get(room_id)
        if room is None or room.status is not RoomStatus.WAITING:
            return False
        room.status = RoomStatus.ACTIVE
        return True

    def end(self, room_id: str, reason: str = "left") -> Room | None:
        """
        Mark a room ended.

        Returns:
            The room if this call ended it, None if it was unknown or already ended
        """
        room = self._rooms.get(room_id)
        if room is None or room.status is RoomStatus.ENDED:
            return None

        room.status = RoomStatus.ENDED
        room.ended_at = datetime.now(UTC)
        room.end_reason = reason
        for user_id in room.members:
            if self._active_by_user.get(user_id) == room_id:
                del self._active_by_user[user_id]

        logger.info(
            "Room ended",
            room_id=room_id,
            reason=reason,
            duration_seconds=round((room.ended_at - room.created_at).total_seconds(), 3),
        )
        return room

    def discard(self, room_id: str) -> Room | None:
        """Remove a room that was never announced to its members."""
        room = self._rooms.pop(room_id, None)
        if room is None:
            return None
        for user_id in room.members:
            if self._active_by_user.get(user_id) == room_id:
                del self._active_by_user[user_id]
        self._total_created -= 1
        self._total_participants -= len(room.members)
        logger.debug("Room discarded before announcement", room_id=room_id)
        return room

    def members_of(self, room_id: str) -> set[str]:
        """User identifiers of a room's members; empty for an unknown room."""
        room = self._rooms.get(room_id)
        return room.member_ids if room is not None else set()

    def active_room_for(self, user_id: str) -> Room | None:
        room_id = self._active_by_user.get(user_id)
        return self._rooms.get(room_id) if room_id is not None else None

    def active_rooms(self) -> list[Room]:
        return [room for room in self._rooms.values() if room.is_active]

    @property
    def active_count(self) -> int:
        return len({room_id for room_id in self._active_by_user.values()})

    def prune_ended(self, older_than: timedelta = RECENT_WINDOW, now: datetime | None = None) -> int:
        """Forget ended rooms that ended before now - older_than."""
        cutoff = (now or datetime.now(UTC)) - older_than
        stale = [
            room_id
            for room_id, room in self._rooms.items()
            if room.status is RoomStatus.ENDED and room.ended_at is not None and room.ended_at < cutoff
        ]
        for room_id in stale:
            del self._rooms[room_id]
        if stale:
            logger.debug("Pruned ended rooms", count=len(stale))
        return len(stale)

    def stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Session statistics since process start."""
        cutoff = (now or datetime.now(UTC)) - RECENT_WINDOW
        recent = sum(
            1
            for room in self._rooms.values()
            if room.status is RoomStatus.ENDED and room.ended_at is not None and room.ended_at >= cutoff
        )
        return {
            "totalRooms": self._total_created,
            "activeRooms": self.active_count,
            "recentRooms": recent,
            "totalParticipants": self._total_participants,
        }
