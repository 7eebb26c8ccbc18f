"""
Audit store.

Writes an at-most-once durable record of room lifecycle, participants,
relayed messages and feedback. Relay correctness never depends on it: each
write is attempted once, and failures are logged and absorbed. When no
database URL is configured every method is a no-op.
"""

import asyncio
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import ArgumentError, InvalidRequestError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ..exceptions import ConfigurationError, DatabaseError
from ..structured_logging.enhanced_logging_config import get_logger
from .models import Base, ChatMessageRecord, ChatParticipant, ChatRoom, Feedback, utc_naive

logger = get_logger(__name__)

RECENT_WINDOW = timedelta(hours=24)


class AuditStore:
    """Async SQLAlchemy access to the audit tables."""

    def __init__(self, database_url: str | None, echo: bool = False) -> None:
        self.database_url = database_url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None
        # Writes are applied in submission order
        self._write_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self._session_maker is not None

    async def initialize(self) -> None:
        """Create the engine and make sure the tables exist."""
        if not self.database_url:
            logger.info("Audit store disabled, no database URL configured")
            return

        engine_kwargs: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": True}
        if self.database_url.startswith("sqlite") and ":memory:" in self.database_url:
            # In-memory SQLite only lives as long as its single connection
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        try:
            self._engine = create_async_engine(self.database_url, **engine_kwargs)
        except (ArgumentError, InvalidRequestError) as e:
            raise ConfigurationError(
                f"Unusable audit database URL: {e}",
                config_key="DATABASE_URL",
                user_friendly="Database unavailable",
            ) from e
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            await self._engine.dispose()
            self._engine = None
            raise DatabaseError(
                f"Failed to initialize audit store: {e}",
                operation="initialize",
                user_friendly="Database unavailable",
            ) from e

        self._session_maker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Audit store initialized", driver=self.database_url.split("://", 1)[0])

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_maker = None

    async def _write(self, operation: str, *rows_or_statements: Any, **log_fields: Any) -> bool:
        if self._session_maker is None:
            return False
        async with self._write_lock:
            try:
                async with self._session_maker() as session:
                    for item in rows_or_statements:
                        if isinstance(item, Base):
                            session.add(item)
                        else:
                            await session.execute(item)
                    await session.commit()
                return True
            except SQLAlchemyError as e:
                logger.error("Audit write failed", operation=operation, error=str(e), **log_fields)
                return False

    async def record_room_created(self, room: Any) -> bool:
        """Record a new room and its members."""
        created_at = utc_naive(room.created_at)
        rows: list[Any] = [
            ChatRoom(
                id=room.room_id,
                chat_type=room.chat_type.value,
                status=room.status.value,
                initiator_id=room.initiator_id,
                created_at=created_at,
            )
        ]
        rows.extend(
            ChatParticipant(
                room_id=room.room_id,
                user_id=user_id,
                trust_tier=conn.trust_tier.value,
                is_initiator=room.is_initiator(user_id),
                joined_at=created_at,
            )
            for user_id, conn in room.members.items()
        )
        return await self._write("record_room_created", *rows, room_id=room.room_id)

    async def record_room_ended(self, room: Any) -> bool:
        """Mark the room ended and close out any participant still active."""
        ended_at = utc_naive(room.ended_at)
        return await self._write(
            "record_room_ended",
            update(ChatRoom)
            .where(ChatRoom.id == room.room_id)
            .values(status="ended", ended_at=ended_at, end_reason=room.end_reason),
            update(ChatParticipant)
            .where(ChatParticipant.room_id == room.room_id, ChatParticipant.is_active.is_(True))
            .values(is_active=False, left_at=ended_at),
            room_id=room.room_id,
        )

    async def record_participant_left(self, room_id: str, user_id: str, left_at: datetime | None = None) -> bool:
        return await self._write(
            "record_participant_left",
            update(ChatParticipant)
            .where(
                ChatParticipant.room_id == room_id,
                ChatParticipant.user_id == user_id,
                ChatParticipant.is_active.is_(True),
            )
            .values(is_active=False, left_at=utc_naive(left_at)),
            room_id=room_id,
            user_id=user_id,
        )

    async def record_message(
        self,
        room_id: str,
        sender_id: str,
        content: str,
        message_type: str,
        sequence: int,
        sent_at: datetime | None = None,
    ) -> bool:
        return await self._write(
            "record_message",
            ChatMessageRecord(
                room_id=room_id,
                sender_id=sender_id,
                content=content,
                message_type=message_type,
                sequence=sequence,
                sent_at=utc_naive(sent_at),
            ),
            room_id=room_id,
        )

    async def record_feedback(
        self,
        rating: str,
        user_id: str | None = None,
        room_id: str | None = None,
        chat_type: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Store a post-chat rating.

        Returns:
            The stored feedback as a dict, or None if the store is disabled or the write failed
        """
        row = Feedback(
            id=str(uuid.uuid4()),
            rating=rating,
            user_id=user_id,
            room_id=room_id,
            chat_type=chat_type,
            created_at=utc_naive(),
        )
        if not await self._write("record_feedback", row, room_id=room_id):
            return None
        return {
            "id": row.id,
            "rating": rating,
            "userId": user_id,
            "roomId": room_id,
            "chatType": chat_type,
            "createdAt": row.created_at.replace(tzinfo=UTC).isoformat().replace("+00:00", "Z"),
        }

    async def list_messages(self, room_id: str) -> list[dict[str, Any]] | None:
        """
        Messages of a room in send order.

        Returns:
            The messages, or None if the room is not in the store

        Raises:
            DatabaseError: If the query fails
        """
        if self._session_maker is None:
            return None
        try:
            async with self._session_maker() as session:
                room = await session.get(ChatRoom, room_id)
                if room is None:
                    return None
                result = await session.execute(
                    select(ChatMessageRecord)
                    .where(ChatMessageRecord.room_id == room_id)
                    .order_by(ChatMessageRecord.sequence, ChatMessageRecord.id)
                )
                return [record.to_dict() for record in result.scalars()]
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load messages: {e}",
                operation="list_messages",
                details={"room_id": room_id},
                user_friendly="Message history is temporarily unavailable",
            ) from e

    async def session_stats(self, now: datetime | None = None) -> dict[str, int] | None:
        """
        Totals over every room ever recorded.

        Returns:
            totalRooms, recentRooms and totalParticipants, or None when disabled

        Raises:
            DatabaseError: If the query fails
        """
        if self._session_maker is None:
            return None
        cutoff = utc_naive((now or datetime.now(UTC)) - RECENT_WINDOW)
        try:
            async with self._session_maker() as session:
                total_rooms = await session.scalar(select(func.count()).select_from(ChatRoom))
                recent_rooms = await session.scalar(
                    select(func.count()).select_from(ChatRoom).where(ChatRoom.ended_at >= cutoff)
                )
                total_participants = await session.scalar(select(func.count()).select_from(ChatParticipant))
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load session statistics: {e}",
                operation="session_stats",
                user_friendly="Statistics are temporarily unavailable",
            ) from e
        return {
            "totalRooms": int(total_rooms or 0),
            "recentRooms": int(recent_rooms or 0),
            "totalParticipants": int(total_participants or 0),
        }

