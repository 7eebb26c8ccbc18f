"""
Test configuration and fixtures for the relay test suite.

Environment defaults are set before any ceople import so that module-level
configuration loading sees test values.
"""

import os

os.environ.setdefault("LOGGING_ENVIRONMENT", "unit_test")
os.environ.setdefault("LOGGING_LEVEL", "DEBUG")
os.environ.setdefault("CEOPLE_JWT_SECRET", "test-jwt-secret-key-for-testing-only")
os.environ.setdefault("SERVER_HOST", "127.0.0.1")
os.environ.setdefault("SERVER_PORT", "54731")
# Audit persistence is opt-in per test
os.environ.pop("DATABASE_URL", None)

from collections.abc import Callable, Generator  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402

from ..auth.identity import TrustTier, UserIdentity  # noqa: E402
from ..config import reset_config  # noqa: E402
from ..config.models import MatchmakingConfig  # noqa: E402
from ..realtime.connection_manager import ConnectionManager  # noqa: E402
from ..realtime.connection_models import Connection  # noqa: E402

TEST_JWT_SECRET = os.environ["CEOPLE_JWT_SECRET"]


@pytest.fixture(autouse=True)
def _reset_config() -> Generator[None, None, None]:
    """Each test sees configuration freshly loaded from the environment."""
    reset_config()
    yield
    reset_config()


def make_identity(user_id: str, trust_tier: TrustTier = TrustTier.AUTHENTICATED) -> UserIdentity:
    return UserIdentity(user_id=user_id, trust_tier=trust_tier, display_name=user_id.title())


def make_websocket() -> AsyncMock:
    """A stand-in WebSocket whose sends are recorded."""
    websocket = AsyncMock()
    websocket.send_json = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


def sent_events(websocket: AsyncMock, event_type: str | None = None) -> list[dict[str, Any]]:
    """Envelopes passed to send_json, optionally filtered by event type."""
    events = [call.args[0] for call in websocket.send_json.call_args_list]
    if event_type is not None:
        events = [event for event in events if event["event_type"] == event_type]
    return events


@pytest.fixture
def connection_factory() -> Callable[..., Connection]:
    """Build connections backed by recording fake websockets."""

    def _factory(user_id: str, trust_tier: TrustTier = TrustTier.AUTHENTICATED) -> Connection:
        return Connection(identity=make_identity(user_id, trust_tier), websocket=make_websocket())

    return _factory


@pytest.fixture
def matchmaking_config() -> MatchmakingConfig:
    return MatchmakingConfig(
        auto_requeue=False,
        max_wait_seconds=0,
        sweep_interval_seconds=5.0,
        match_retry_limit=1,
        max_messages_per_minute=120,
        max_message_length=2000,
    )


@pytest.fixture
def manager(matchmaking_config: MatchmakingConfig) -> ConnectionManager:
    return ConnectionManager(matchmaking_config)
