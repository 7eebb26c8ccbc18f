"""
Matchmaker.

Pairs a newly queued user with the earliest compatible waiter. The pool
mutation, the partner lookup and room creation happen in one synchronous
step, so two join-queue calls can never claim the same waiter.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ChatType, Connection, RoomStatus
from .room_registry import Room, RoomRegistry
from .waiting_pool import WaitingPool

logger = get_logger(__name__)


@dataclass
class MatchResult:
    """A freshly created room and its two roles."""

    room: Room
    initiator: Connection
    responder: Connection
    initiator_chat_type: ChatType
    responder_chat_type: ChatType

    @property
    def room_id(self) -> str:
        return self.room.room_id


class Matchmaker:
    """Runs the join-queue state machine against the pool and registry."""

    def __init__(self, pool: WaitingPool, registry: RoomRegistry) -> None:
        self.pool = pool
        self.registry = registry

    def find_match(
        self, connection: Connection, chat_type: ChatType, exclude: Iterable[str] = ()
    ) -> MatchResult | None:
        """
        Queue the caller and try to pair them.

        The caller's stale entry is replaced, the caller is enqueued, and the
        earliest compatible waiter is claimed. Waiters whose connection has
        closed, or who are already in an active room, are purged as they are
        encountered. The caller becomes the initiator of the new room.

        Args:
            connection: The caller's connection
            chat_type: The requested chat type
            exclude: User identifiers the caller should not be paired with

        Returns:
            The match, or None if the caller stays queued
        """
        user_id = connection.user_id
        self.pool.dequeue(user_id)
        self.pool.enqueue(user_id, chat_type, connection)

        excluded = set(exclude)
        while True:
            candidate = self.pool.find_compatible(user_id, chat_type, exclude=excluded)
            if candidate is None:
                logger.debug("No compatible waiter", user_id=user_id, chat_type=chat_type.value, queued=len(self.pool))
                return None

            partner = candidate.connection
            if not partner.is_open or partner.disconnected:
                logger.info("Purged ghost queue entry", user_id=candidate.user_id, connection_id=partner.connection_id)
                self.pool.dequeue(candidate.user_id, partner.connection_id)
                continue
            if self.registry.active_room_for(candidate.user_id) is not None:
                logger.warning("Purged queue entry of user already in a room", user_id=candidate.user_id)
                self.pool.dequeue(candidate.user_id, partner.connection_id)
                continue
            break

        self.pool.dequeue(user_id, connection.connection_id)
        self.pool.dequeue(candidate.user_id, partner.connection_id)

        room = self.registry.create(
            [connection, partner],
            chat_type.resolve(candidate.chat_type),
            initiator_id=user_id,
            requested_chat_types={user_id: chat_type, candidate.user_id: candidate.chat_type},
            status=RoomStatus.WAITING,
        )
        connection.room_id = room.room_id
        partner.room_id = room.room_id

        logger.info(
            "Match found",
            room_id=room.room_id,
            initiator_id=user_id,
            responder_id=candidate.user_id,
            chat_type=room.chat_type.value,
            responder_waited_seconds=round(candidate.waited(), 3),
        )
        return MatchResult(
            room=room,
            initiator=connection,
            responder=partner,
            initiator_chat_type=chat_type,
            responder_chat_type=candidate.chat_type,
        )

    def rollback(self, match: MatchResult, *, requeue_initiator: bool = True) -> None:
        """
        Undo a match whose announcement failed.

        The room is discarded, both connections leave it, and the initiator
        is put back in the pool. The responder is not re-queued; its
        connection is the one that failed.
        """
        self.registry.discard(match.room_id)
        for conn in (match.initiator, match.responder):
            if conn.room_id == match.room_id:
                conn.room_id = None
        if requeue_initiator and match.initiator.is_open and not match.initiator.disconnected:
            self.pool.enqueue(match.initiator.user_id, match.initiator_chat_type, match.initiator)
        logger.info(
            "Match rolled back",
            room_id=match.room_id,
            initiator_id=match.initiator.user_id,
            responder_id=match.responder.user_id,
        )
