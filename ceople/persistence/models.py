"""
SQLAlchemy models for the audit store.

All models share one DeclarativeBase and metadata. Datetimes are stored as
naive UTC to keep SQLite comparisons simple.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, MetaData, String, Text
from sqlalchemy.orm import DeclarativeBase

metadata = MetaData()


def utc_naive(value: datetime | None = None) -> datetime:
    """Convert an aware datetime (default now) to naive UTC for storage."""
    value = value or datetime.now(UTC)
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


class Base(DeclarativeBase):
    """Shared declarative base for audit models."""

    metadata = metadata


class ChatRoom(Base):
    """One matched conversation."""

    __tablename__ = "chat_rooms"

    id = Column(String(36), primary_key=True)
    chat_type = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default="active")
    initiator_id = Column(String(128), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_naive)
    ended_at = Column(DateTime, nullable=True, index=True)
    end_reason = Column(String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<ChatRoom(id='{self.id}', status='{self.status}')>"


class ChatParticipant(Base):
    """A user's membership in a room."""

    __tablename__ = "chat_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(128), nullable=False, index=True)
    trust_tier = Column(String(16), nullable=False)
    is_initiator = Column(Boolean, nullable=False, default=False)
    joined_at = Column(DateTime, nullable=False, default=utc_naive)
    left_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class ChatMessageRecord(Base):
    """A relayed chat message."""

    __tablename__ = "chat_messages"
    __table_args__ = (Index("ix_chat_messages_room_sequence", "room_id", "sequence"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String(128), nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(String(16), nullable=False, default="text")
    sequence = Column(Integer, nullable=False)
    sent_at = Column(DateTime, nullable=False, default=utc_naive)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "senderId": self.sender_id,
            "content": self.content,
            "messageType": self.message_type,
            "timestamp": self.sent_at.replace(tzinfo=UTC).isoformat().replace("+00:00", "Z"),
        }


class Feedback(Base):
    """A post-chat rating."""

    __tablename__ = "feedback"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    rating = Column(String(16), nullable=False)
    user_id = Column(String(128), nullable=True)
    room_id = Column(String(36), nullable=True, index=True)
    chat_type = Column(String(16), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_naive)
