"""
Pydantic schemas for inbound WebSocket frames.

A frame is ``{"type": <event>, "data": {...}}``; each event has its own
data schema. Field names follow the client's camelCase.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .connection_models import ChatType, MessageType

InboundEventType = Literal[
    "join-queue",
    "leave-queue",
    "send-message",
    "webrtc-signal",
    "typing",
    "leave-room",
    "ping",
]


class InboundFrame(BaseModel):
    """Outer frame shared by every client event."""

    model_config = ConfigDict(extra="forbid")

    type: InboundEventType
    data: dict[str, Any] = Field(default_factory=dict)


class EventData(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class JoinQueueData(EventData):
    chat_type: ChatType = Field(alias="chatType")

    @field_validator("chat_type", mode="before")
    @classmethod
    def parse_chat_type(cls, value: Any) -> ChatType:
        """Accept "either" as the wildcard."""
        if not isinstance(value, str | ChatType):
            raise ValueError("chatType must be a string")
        return ChatType.parse(value)


class SendMessageData(EventData):
    room_id: str = Field(alias="roomId", min_length=1, max_length=64)
    message: str = Field(min_length=1)
    message_type: MessageType = Field(default=MessageType.TEXT, alias="messageType")

    @field_validator("message")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value


class WebRTCSignalData(EventData):
    room_id: str = Field(alias="roomId", min_length=1, max_length=64)
    signal: dict[str, Any]
    target_user_id: str | None = Field(default=None, alias="targetUserId", max_length=128)


class TypingData(EventData):
    room_id: str = Field(alias="roomId", min_length=1, max_length=64)
    is_typing: bool = Field(default=True, alias="isTyping")


class LeaveRoomData(EventData):
    room_id: str | None = Field(default=None, alias="roomId", max_length=64)


class EmptyData(EventData):
    pass


EVENT_SCHEMAS: dict[str, type[EventData]] = {
    "join-queue": JoinQueueData,
    "leave-queue": EmptyData,
    "send-message": SendMessageData,
    "webrtc-signal": WebRTCSignalData,
    "typing": TypingData,
    "leave-room": LeaveRoomData,
    "ping": EmptyData,
}
