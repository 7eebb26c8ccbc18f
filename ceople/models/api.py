"""
Request and response models for the room, statistics and feedback routes.

Field names are camelCase on the wire to match the WebSocket events.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..realtime.connection_models import ChatType


class ChatMessage(BaseModel):
    id: int | None = None
    room_id: str = Field(..., alias="roomId")
    sender_id: str = Field(..., alias="senderId")
    content: str
    message_type: str = Field(..., alias="messageType")
    timestamp: str

    model_config = ConfigDict(populate_by_name=True)


class RoomMessagesResponse(BaseModel):
    """Messages of one room in send order."""

    room_id: str = Field(..., alias="roomId")
    messages: list[ChatMessage] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class SessionStatsResponse(BaseModel):
    """Room totals; recent means ended within the last 24 hours."""

    total_rooms: int = Field(..., alias="totalRooms")
    active_rooms: int = Field(..., alias="activeRooms")
    recent_rooms: int = Field(..., alias="recentRooms")
    total_participants: int = Field(..., alias="totalParticipants")

    model_config = ConfigDict(populate_by_name=True)


class FeedbackRequest(BaseModel):
    """A post-chat rating."""

    rating: Literal["positive", "negative"]
    room_id: str | None = Field(default=None, alias="roomId", max_length=64)
    chat_type: ChatType | None = Field(default=None, alias="chatType")
    user_id: str | None = Field(default=None, alias="userId", max_length=128)

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class FeedbackResponse(BaseModel):
    id: str
    rating: str
    room_id: str | None = Field(default=None, alias="roomId")
    chat_type: str | None = Field(default=None, alias="chatType")
    user_id: str | None = Field(default=None, alias="userId")
    created_at: str = Field(..., alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)
