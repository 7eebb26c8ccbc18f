"""
Signaling relay.

Forwards WebRTC negotiation payloads, chat messages and typing indicators
between the members of a room. Payloads pass through untouched; only the
signal's "type" field is read, for logging. Sends to one recipient happen in
the order the sender's frames are processed, and a recipient who cannot be
reached simply misses the frame.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from ..exceptions import ErrorContext, ProtocolViolation
from ..structured_logging.enhanced_logging_config import get_logger
from .connection_models import Connection, MessageType
from .room_registry import Room, RoomRegistry

logger = get_logger(__name__)

SendEvent = Callable[..., Awaitable[bool]]

CLIENT_MESSAGE_TYPES = {MessageType.TEXT, MessageType.EMOJI}


class SignalingRelay:
    """Room-scoped fan-out of client frames."""

    def __init__(self, registry: RoomRegistry, send_event: SendEvent) -> None:
        self.registry = registry
        self._send_event = send_event

    def authorize(self, connection: Connection, room_id: str, event: str) -> Room | None:
        """
        Check that the sender may relay into room_id.

        Returns:
            The room, or None when the room is unknown or already ended

        Raises:
            ProtocolViolation: The room is active but the sender is not a member
        """
        room = self.registry.get(room_id)
        if room is None or not room.is_active:
            logger.debug(
                "Dropped frame for inactive room",
                event=event,
                room_id=room_id,
                user_id=connection.user_id,
            )
            return None

        member = room.members.get(connection.user_id)
        if member is not connection or connection.room_id != room_id:
            raise ProtocolViolation(
                "Sender is not a member of the room",
                ErrorContext(
                    user_id=connection.user_id,
                    room_id=room_id,
                    connection_id=connection.connection_id,
                    event=event,
                ),
                event=event,
            )
        return room

    async def relay_signal(
        self,
        connection: Connection,
        room_id: str,
        signal: dict[str, Any],
        target_user_id: str | None = None,
    ) -> int:
        """
        Forward a negotiation payload to the other member(s).

        Args:
            connection: The sender
            room_id: Room the signal belongs to
            signal: Opaque offer/answer/ICE payload
            target_user_id: Restrict delivery to this member; None broadcasts

        Returns:
            Number of members the signal was delivered to

        Raises:
            ProtocolViolation: Sender or target is not a room member
        """
        room = self.authorize(connection, room_id, "webrtc-signal")
        if room is None:
            return 0

        recipients = room.other_members(connection.user_id)
        if target_user_id is not None:
            recipients = [conn for conn in recipients if conn.user_id == target_user_id]
            if not recipients:
                raise ProtocolViolation(
                    "Signal target is not another member of the room",
                    ErrorContext(
                        user_id=connection.user_id,
                        room_id=room_id,
                        connection_id=connection.connection_id,
                        event="webrtc-signal",
                        metadata={"target_user_id": target_user_id},
                    ),
                    event="webrtc-signal",
                )

        payload = {
            "signal": signal,
            "fromUserId": connection.user_id,
            "targetUserId": target_user_id,
        }
        delivered = 0
        for recipient in recipients:
            if await self._send_event(recipient, "webrtc-signal", payload, room_id=room_id):
                delivered += 1

        logger.debug(
            "Relayed signal",
            room_id=room_id,
            from_user_id=connection.user_id,
            signal_type=signal.get("type") if isinstance(signal, dict) else None,
            delivered=delivered,
        )
        return delivered

    async def relay_message(
        self,
        connection: Connection,
        room_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> dict[str, Any] | None:
        """
        Fan a chat message out to the other member(s).

        Returns:
            The new-message payload that was sent, or None if the room is gone

        Raises:
            ProtocolViolation: Sender is not a member, or used a server-only message type
        """
        room = self.authorize(connection, room_id, "send-message")
        if room is None:
            return None
        if message_type not in CLIENT_MESSAGE_TYPES:
            raise ProtocolViolation(
                "Clients may not send this message type",
                ErrorContext(user_id=connection.user_id, room_id=room_id, event="send-message"),
                event="send-message",
                details={"message_type": message_type.value},
            )

        message = {
            "roomId": room_id,
            "senderId": connection.user_id,
            "content": content,
            "messageType": message_type.value,
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        }
        for recipient in room.other_members(connection.user_id):
            await self._send_event(recipient, "new-message", message, room_id=room_id)
        return message

    async def relay_typing(self, connection: Connection, room_id: str, is_typing: bool) -> bool:
        """Forward a typing indicator to the other member(s)."""
        room = self.authorize(connection, room_id, "typing")
        if room is None:
            return False
        payload = {"roomId": room_id, "fromUserId": connection.user_id, "isTyping": is_typing}
        for recipient in room.other_members(connection.user_id):
            await self._send_event(recipient, "typing", payload, room_id=room_id)
        return True
