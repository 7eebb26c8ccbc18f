"""
Sliding-window rate limiting for handshakes and relayed frames.
"""

import time
from typing import Any

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Rate limiter keyed by remote address (handshakes) and connection (frames).

    Each key keeps the timestamps of its attempts inside the window.
    """

    def __init__(
        self,
        max_connection_attempts: int = 20,
        connection_window: int = 60,
        max_messages_per_minute: int = 120,
        message_window: int = 60,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            max_connection_attempts: Handshakes allowed per address per window
            connection_window: Handshake window in seconds
            max_messages_per_minute: Relayed frames allowed per connection per window
            message_window: Frame window in seconds
        """
        self.connection_attempts: dict[str, list[float]] = {}
        self.max_connection_attempts = max_connection_attempts
        self.connection_window = connection_window

        self.message_attempts: dict[str, list[float]] = {}
        self.max_messages_per_minute = max_messages_per_minute
        self.message_window = message_window

    @staticmethod
    def _check(attempts: dict[str, list[float]], key: str, limit: int, window: int) -> bool:
        current_time = time.time()
        recent = [t for t in attempts.get(key, []) if current_time - t < window]
        if len(recent) >= limit:
            attempts[key] = recent
            return False
        recent.append(current_time)
        attempts[key] = recent
        return True

    def check_connection_rate_limit(self, remote_addr: str) -> bool:
        """Record a handshake from remote_addr; False once the limit is exceeded."""
        allowed = self._check(self.connection_attempts, remote_addr, self.max_connection_attempts, self.connection_window)
        if not allowed:
            logger.warning("Connection rate limit exceeded", remote_addr=remote_addr)
        return allowed

    def check_message_rate_limit(self, connection_id: str) -> bool:
        """
        Record a relayed frame for connection_id.

        Returns:
            True if the frame may be processed, False if it must be dropped
        """
        allowed = self._check(self.message_attempts, connection_id, self.max_messages_per_minute, self.message_window)
        if not allowed:
            logger.warning(
                "Message rate limit exceeded",
                connection_id=connection_id,
                max_messages=self.max_messages_per_minute,
            )
        return allowed

    def get_message_rate_limit_info(self, connection_id: str) -> dict[str, Any]:
        current_time = time.time()
        recent = [t for t in self.message_attempts.get(connection_id, []) if current_time - t < self.message_window]
        return {
            "attempts": len(recent),
            "max_attempts": self.max_messages_per_minute,
            "window_seconds": self.message_window,
            "attempts_remaining": max(0, self.max_messages_per_minute - len(recent)),
        }

    def remove_connection_data(self, connection_id: str) -> None:
        """Forget a closed connection's frame history."""
        self.message_attempts.pop(connection_id, None)

    def cleanup_old_attempts(self) -> None:
        """Drop timestamps that fell out of their window and empty keys."""
        current_time = time.time()
        for attempts, window in (
            (self.connection_attempts, self.connection_window),
            (self.message_attempts, self.message_window),
        ):
            for key, timestamps in list(attempts.items()):
                recent = [t for t in timestamps if current_time - t < window]
                if recent:
                    attempts[key] = recent
                else:
                    del attempts[key]
