"""
Data models shared by the matchmaking components.

Connection wraps the transport handle; the core only keeps a reference to
push events and to know whether the channel is still open.
"""

# pylint: disable=too-many-instance-attributes  # Reason: Connection and room records carry their full lifecycle state

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..auth.identity import TrustTier, UserIdentity


class ChatType(str, Enum):
    """Requested conversation kind. BOTH is the wildcard."""

    VIDEO = "video"
    TEXT = "text"
    BOTH = "both"

    @classmethod
    def parse(cls, value: "str | ChatType") -> "ChatType":
        """Parse a client-supplied chat type; "either" is accepted for BOTH."""
        if isinstance(value, ChatType):
            return value
        normalized = str(value).strip().lower()
        if normalized == "either":
            return cls.BOTH
        return cls(normalized)

    def is_compatible(self, other: "ChatType") -> bool:
        """Symmetric pairwise compatibility: equal, or either side is the wildcard."""
        return self is other or self is ChatType.BOTH or other is ChatType.BOTH

    def resolve(self, other: "ChatType") -> "ChatType":
        """The chat type a room of these two requests runs as."""
        if self is ChatType.BOTH:
            return other
        return self


class RoomStatus(str, Enum):
    """Room lifecycle; transitions only move forward."""

    WAITING = "waiting"
    ACTIVE = "active"
    ENDED = "ended"


class MessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"
    EMOJI = "emoji"


@dataclass(eq=False)
class Connection:
    """
    A live bidirectional channel to one client.

    Equality is identity: two connections of the same user are distinct.
    """

    identity: UserIdentity
    websocket: Any
    connection_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    room_id: str | None = None
    connected_at: float = field(default_factory=time.time)
    is_open: bool = True
    disconnected: bool = False
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    @property
    def trust_tier(self) -> TrustTier:
        return self.identity.trust_tier
