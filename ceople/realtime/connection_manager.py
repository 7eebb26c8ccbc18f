"""
Connection manager for the matchmaking relay.

Coordinates the waiting pool, matchmaker, room registry, signaling relay and
lifecycle manager. Every operation that mutates the pool or the registry runs
under one asyncio lock, so enqueue-and-match and leave-and-end are atomic
with respect to each other. Nothing is sent while the lock is held: events
produced inside the critical section go to an outbox that is delivered after
the lock is released, so one slow socket never stalls unrelated users. Relay
traffic only reads shared state and does not take the lock.
"""

import asyncio
import time
from collections.abc import Coroutine, Iterable
from typing import Any

from fastapi import WebSocketDisconnect

from ..auth.identity import UserIdentity
from ..config.models import MatchmakingConfig
from ..error_types import ErrorMessages, ErrorType, create_websocket_error_response
from ..exceptions import ProtocolViolation
from ..persistence.audit_store import AuditStore
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import ChatType, Connection, MessageType
from .envelope import build_event
from .lifecycle import LifecycleManager
from .matchmaker import Matchmaker, MatchResult
from .rate_limiter import RateLimiter
from .room_registry import Room, RoomRegistry
from .signaling_relay import SignalingRelay
from .waiting_pool import WaitingPool

logger = get_logger(__name__)

SEND_FAILURES = (WebSocketDisconnect, RuntimeError, OSError)

# (connection, event_type, data, room_id)
OutboundEvent = tuple[Connection, str, dict[str, Any], str | None]
Outbox = tuple[list[OutboundEvent], list[tuple[MatchResult, ChatType]]]


class ConnectionManager:
    """
    Owns all live connections and the matchmaking state.

    Components:
    - WaitingPool: users waiting for a partner
    - RoomRegistry: active and recently ended rooms
    - Matchmaker: enqueue-and-pair
    - SignalingRelay: room-scoped fan-out
    - LifecycleManager: leave and disconnect teardown
    - RateLimiter: per-connection frame limits
    """

    def __init__(
        self,
        config: MatchmakingConfig | None = None,
        audit_store: AuditStore | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.config = config or MatchmakingConfig()
        self.audit_store = audit_store
        self.rate_limiter = rate_limiter or RateLimiter(max_messages_per_minute=self.config.max_messages_per_minute)

        self.connections: dict[str, Connection] = {}
        self.pool = WaitingPool()
        self.registry = RoomRegistry()
        self.matchmaker = Matchmaker(self.pool, self.registry)
        self.relay = SignalingRelay(self.registry, self.send_event)
        self.lifecycle = LifecycleManager(
            self.pool,
            self.registry,
            self._queue_event,
            requeue=self._requeue_locked,
            on_room_ended=self._record_room_ended,
            auto_requeue=self.config.auto_requeue,
        )

        self._lock = asyncio.Lock()
        # Filled under the lock, delivered after it is released
        self._outbox: list[OutboundEvent] = []
        self._pending_matches: list[tuple[MatchResult, ChatType]] = []
        self._sequence_counter = 0
        self._background_tasks: set[asyncio.Task] = set()
        self.started_at = time.time()

    # --- plumbing -----------------------------------------------------

    def _get_next_sequence(self) -> int:
        self._sequence_counter += 1
        return self._sequence_counter

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def drain_background_tasks(self) -> None:
        """Wait for scheduled cleanup and audit writes to finish."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def _audit(self, coro_factory: Any, *args: Any, **kwargs: Any) -> None:
        if self.audit_store is None or not self.audit_store.enabled:
            return
        self._spawn(coro_factory(*args, **kwargs))

    def _record_room_ended(self, room: Room, leaver_id: str) -> None:
        if self.audit_store is None:
            return
        self._audit(self.audit_store.record_participant_left, room.room_id, leaver_id, room.ended_at)
        self._audit(self.audit_store.record_room_ended, room)

    async def _queue_event(
        self,
        connection: Connection,
        event_type: str,
        data: dict[str, Any] | None = None,
        *,
        room_id: str | None = None,
    ) -> bool:
        """Hold an event for delivery once the lock is released."""
        self._outbox.append((connection, event_type, data or {}, room_id))
        return True

    def _take_outbox(self) -> Outbox:
        outbox = (self._outbox, self._pending_matches)
        self._outbox = []
        self._pending_matches = []
        return outbox

    async def _flush(self, outbox: Outbox) -> None:
        """Deliver queued events in order, then announce queued matches."""
        events, matches = outbox
        for connection, event_type, data, room_id in events:
            await self.send_event(connection, event_type, data, room_id=room_id)
        for match, chat_type in matches:
            await self._announce_match(match, chat_type)

    async def send_event(
        self,
        connection: Connection,
        event_type: str,
        data: dict[str, Any] | None = None,
        *,
        room_id: str | None = None,
    ) -> bool:
        """
        Push one event to a connection.

        A failed send marks the connection dead and schedules the disconnect
        cleanup; it never raises. Must not be called with the lock held.

        Returns:
            True if the event was handed to the transport
        """
        if not connection.is_open:
            return False

        event = build_event(event_type, data, room_id=room_id, connection_manager=self)
        try:
            async with connection.send_lock:
                await connection.websocket.send_json(event)
            return True
        except SEND_FAILURES as e:
            logger.warning(
                "Send failed, treating connection as disconnected",
                user_id=connection.user_id,
                connection_id=connection.connection_id,
                event_type=event_type,
                error=str(e),
                error_type=type(e).__name__,
            )
            connection.is_open = False
            if not connection.disconnected:
                self._spawn(self.handle_disconnect(connection))
            return False

    async def send_error(
        self,
        connection: Connection,
        error_type: ErrorType,
        message: str,
        user_friendly: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        return await self.send_event(
            connection,
            "error",
            create_websocket_error_response(error_type, message, user_friendly, details),
        )

    # --- connection registration -----------------------------------------

    async def connect(self, websocket: Any, identity: UserIdentity) -> Connection:
        """Register an accepted, authenticated WebSocket and greet it."""
        connection = Connection(identity=identity, websocket=websocket)
        self.connections[connection.connection_id] = connection
        logger.info(
            "Connection registered",
            user_id=identity.user_id,
            connection_id=connection.connection_id,
            trust_tier=identity.trust_tier.value,
            active_connections=len(self.connections),
        )
        await self.send_event(
            connection,
            "connected",
            {
                "userId": identity.user_id,
                "trustTier": identity.trust_tier.value,
                "displayName": identity.display_name,
            },
        )
        return connection

    async def handle_disconnect(self, connection: Connection) -> Room | None:
        """Transport reported the connection closed; clean up exactly once."""
        async with self._lock:
            room = await self.lifecycle.disconnect(connection)
            self.connections.pop(connection.connection_id, None)
            self.rate_limiter.remove_connection_data(connection.connection_id)
            outbox = self._take_outbox()
        await self._flush(outbox)
        return room

    # --- matchmaking ----------------------------------------------------

    async def join_queue(self, connection: Connection, chat_type: ChatType) -> Room | None:
        """
        Queue the connection and try to pair it.

        The pairing happens under the lock; the match is announced after the
        lock is released, responder first.

        Returns:
            The new room, or None if the connection is waiting
        """
        async with self._lock:
            skipped = await self._prepare_join_locked(connection)
            match = self._find_match_locked(connection, chat_type, skipped) if skipped is not None else None
            outbox = self._take_outbox()
        await self._flush(outbox)
        if match is None:
            return None
        return await self._announce_match(match, chat_type, skipped or ())

    async def _prepare_join_locked(self, connection: Connection) -> list[str] | None:
        """
        Leave the current room, if any, before searching again.

        Returns:
            User identifiers to pass over in the search, or None if the
            connection may not queue
        """
        if connection.disconnected or not connection.is_open:
            return None

        skipped: list[str] = []
        if connection.room_id is not None:
            previous = await self.lifecycle.leave(connection, reason="skipped")
            if previous is not None:
                skipped = [uid for uid in previous.member_ids if uid != connection.user_id]
                await self._queue_event(connection, "room-left", {"roomId": previous.room_id}, room_id=previous.room_id)

        if self.registry.active_room_for(connection.user_id) is not None:
            await self._queue_event(
                connection,
                "error",
                create_websocket_error_response(
                    ErrorType.ALREADY_IN_ROOM,
                    "User is already in an active room on another connection",
                    ErrorMessages.ALREADY_IN_ROOM,
                ),
            )
            return None
        return skipped

    def _find_match_locked(
        self, connection: Connection, chat_type: ChatType, exclude: Iterable[str] = ()
    ) -> MatchResult | None:
        match = self.matchmaker.find_match(connection, chat_type, exclude=exclude)
        if match is None:
            self._outbox.append((connection, "waiting-for-match", {"chatType": chat_type.value}, None))
        return match

    async def _requeue_locked(self, connection: Connection, chat_type: ChatType) -> None:
        if connection.disconnected or not connection.is_open:
            return
        match = self._find_match_locked(connection, chat_type)
        if match is not None:
            self._pending_matches.append((match, chat_type))

    async def _announce(self, match: MatchResult) -> bool:
        """
        Tell both members about a pending room, responder first.

        Returns:
            False if the responder could not be told or the room was
            abandoned while the announcement was in flight
        """
        room = match.room
        delivered = await self.send_event(
            match.responder,
            "match-found",
            {"roomId": room.room_id, "chatType": room.chat_type.value, "isInitiator": False},
            room_id=room.room_id,
        )
        if not delivered or self.registry.get(room.room_id) is not room or not self.registry.activate(room.room_id):
            return False

        if self.audit_store is not None:
            self._audit(self.audit_store.record_room_created, room)
        await self.send_event(
            match.initiator,
            "match-found",
            {"roomId": room.room_id, "chatType": room.chat_type.value, "isInitiator": True},
            room_id=room.room_id,
        )
        return True

    async def _announce_match(
        self, match: MatchResult, chat_type: ChatType, exclude: Iterable[str] = ()
    ) -> Room | None:
        """
        Announce a match, rolling back and searching again if the responder is gone.

        The search is retried up to match_retry_limit times; after that the
        caller keeps waiting.
        """
        failed_attempts = 0
        caller = match.initiator
        current: MatchResult | None = match
        while current is not None:
            if await self._announce(current):
                return current.room

            failed_attempts += 1
            async with self._lock:
                if current.room.is_waiting:
                    self.matchmaker.rollback(current)
                current = None
                if caller.disconnected or not caller.is_open or caller.room_id is not None:
                    pass
                elif failed_attempts > self.config.match_retry_limit:
                    logger.info(
                        "Match retries exhausted, caller keeps waiting",
                        user_id=caller.user_id,
                        attempts=failed_attempts,
                    )
                    self._outbox.append((caller, "waiting-for-match", {"chatType": chat_type.value}, None))
                else:
                    current = self._find_match_locked(caller, chat_type, exclude)
                outbox = self._take_outbox()
            await self._flush(outbox)
        return None

    async def leave_queue(self, connection: Connection) -> bool:
        """Stop searching without disconnecting."""
        async with self._lock:
            removed = self.pool.dequeue(connection.user_id, connection.connection_id) is not None
        await self.send_event(connection, "queue-left", {"removed": removed})
        return removed

    async def leave_room(self, connection: Connection, room_id: str | None = None) -> Room | None:
        """
        End the connection's room and acknowledge.

        The acknowledgement is sent even when nothing was left, so a client
        retrying a leave always hears back.
        """
        async with self._lock:
            acknowledged_room_id = room_id or connection.room_id
            room = await self.lifecycle.leave(connection, room_id, reason="left")
            outbox = self._take_outbox()
        await self._flush(outbox)
        await self.send_event(connection, "room-left", {"roomId": acknowledged_room_id}, room_id=acknowledged_room_id)
        return room

    async def sweep_expired(self, now: float | None = None) -> int:
        """Evict queue entries that waited longer than max_wait_seconds."""
        max_wait = self.config.max_wait_seconds
        if max_wait <= 0:
            return 0
        now = now if now is not None else time.time()
        async with self._lock:
            expired = self.pool.expired(max_wait, now)
            for entry in expired:
                if self.pool.dequeue(entry.user_id, entry.connection.connection_id) is None:
                    continue
                logger.info("Queue entry timed out", user_id=entry.user_id, waited_seconds=round(entry.waited(now), 1))
                await self._queue_event(
                    entry.connection,
                    "match-timeout",
                    {"chatType": entry.chat_type.value, "waitedSeconds": round(entry.waited(now), 1)},
                )
            outbox = self._take_outbox()
        await self._flush(outbox)
        return len(expired)

    # --- relay ----------------------------------------------------------

    async def relay_signal(
        self,
        connection: Connection,
        room_id: str,
        signal: dict[str, Any],
        target_user_id: str | None = None,
    ) -> int:
        try:
            return await self.relay.relay_signal(connection, room_id, signal, target_user_id)
        except ProtocolViolation:
            return 0

    async def send_message(
        self,
        connection: Connection,
        room_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> dict[str, Any] | None:
        """Relay a chat message, then record it."""
        if len(content) > self.config.max_message_length:
            await self.send_error(
                connection,
                ErrorType.INVALID_INPUT,
                f"Message exceeds {self.config.max_message_length} characters",
                ErrorMessages.MESSAGE_TOO_LARGE,
                {"max_length": self.config.max_message_length},
            )
            return None
        try:
            message = await self.relay.relay_message(connection, room_id, content, message_type)
        except ProtocolViolation:
            return None
        if message is not None and self.audit_store is not None:
            room = self.registry.get(room_id)
            sequence = room.next_message_sequence() if room is not None else 0
            self._audit(
                self.audit_store.record_message,
                room_id,
                connection.user_id,
                content,
                message_type.value,
                sequence,
            )
        return message

    async def send_typing(self, connection: Connection, room_id: str, is_typing: bool) -> bool:
        try:
            return await self.relay.relay_typing(connection, room_id, is_typing)
        except ProtocolViolation:
            return False

    # --- introspection and shutdown ---------------------------------------

    def get_stats(self) -> dict[str, int]:
        return {
            "active": len(self.connections),
            "queued": len(self.pool),
            "active_rooms": self.registry.active_count,
        }

    def uptime_seconds(self) -> float:
        return time.time() - self.started_at

    async def shutdown(self) -> None:
        """End every room and close every connection."""
        async with self._lock:
            for room in self.registry.active_rooms():
                ended = self.registry.end(room.room_id, "shutdown")
                if ended is not None and self.audit_store is not None:
                    # Closes out every participant; nobody left on their own
                    self._audit(self.audit_store.record_room_ended, ended)
            closing = list(self.connections.values())
            for connection in closing:
                connection.is_open = False
                connection.disconnected = True
            self.connections.clear()
            self._take_outbox()

        for connection in closing:
            try:
                await connection.websocket.close(code=1001)
            except SEND_FAILURES as e:
                logger.debug("Close during shutdown failed", connection_id=connection.connection_id, error=str(e))
        await self.drain_background_tasks()
        logger.info("Connection manager shut down")
