"""
Tests for leave and disconnect teardown.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from ...realtime.connection_models import ChatType, RoomStatus
from ...realtime.lifecycle import LifecycleManager
from ...realtime.room_registry import RoomRegistry
from ...realtime.waiting_pool import WaitingPool


@pytest.fixture
def send_event():
    return AsyncMock(return_value=True)


@pytest.fixture
def pool():
    return WaitingPool()


@pytest.fixture
def registry():
    return RoomRegistry()


def _paired(registry, connection_factory, chat_types=(ChatType.VIDEO, ChatType.VIDEO)):
    alice, bob = connection_factory("alice"), connection_factory("bob")
    room = registry.create(
        [alice, bob],
        ChatType.VIDEO,
        initiator_id="alice",
        requested_chat_types={"alice": chat_types[0], "bob": chat_types[1]},
    )
    alice.room_id = bob.room_id = room.room_id
    return room, alice, bob


class TestLeave:
    """Test cases for LifecycleManager.leave."""

    @pytest.mark.asyncio
    async def test_leave_ends_room_and_notifies_partner(self, pool, registry, send_event, connection_factory):
        """Test the remaining member hears user-left."""
        # Setup
        on_room_ended = Mock()
        lifecycle = LifecycleManager(pool, registry, send_event, on_room_ended=on_room_ended)
        room, alice, bob = _paired(registry, connection_factory)

        # Execute
        ended = await lifecycle.leave(alice)

        # Verify
        assert ended is room
        assert room.end_reason == "left"
        assert alice.room_id is None
        assert bob.room_id is None
        send_event.assert_awaited_once_with(bob, "user-left", {"roomId": room.room_id}, room_id=room.room_id)
        on_room_ended.assert_called_once_with(room, "alice")

    @pytest.mark.asyncio
    async def test_leave_twice_is_a_no_op(self, pool, registry, send_event, connection_factory):
        """Test a repeated leave does not notify again."""
        # Setup
        lifecycle = LifecycleManager(pool, registry, send_event)
        _, alice, _ = _paired(registry, connection_factory)
        await lifecycle.leave(alice)
        send_event.reset_mock()

        # Execute
        second = await lifecycle.leave(alice)

        # Verify
        assert second is None
        send_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_leave_for_other_room_is_ignored(self, pool, registry, send_event, connection_factory):
        """Test a stale room id does not end the current room."""
        # Setup
        lifecycle = LifecycleManager(pool, registry, send_event)
        room, alice, _ = _paired(registry, connection_factory)

        # Execute
        result = await lifecycle.leave(alice, "some-older-room")

        # Verify
        assert result is None
        assert room.is_active
        assert alice.room_id == room.room_id

    @pytest.mark.asyncio
    async def test_leave_before_announcement_discards_silently(self, pool, registry, send_event, connection_factory):
        """Test a room nobody was told about vanishes without user-left."""
        # Setup
        on_room_ended = Mock()
        lifecycle = LifecycleManager(pool, registry, send_event, on_room_ended=on_room_ended)
        alice, bob = connection_factory("alice"), connection_factory("bob")
        room = registry.create([alice, bob], ChatType.VIDEO, initiator_id="alice", status=RoomStatus.WAITING)
        alice.room_id = bob.room_id = room.room_id

        # Execute
        result = await lifecycle.leave(bob)

        # Verify
        assert result is None
        assert room.room_id not in registry
        assert alice.room_id is None
        assert bob.room_id is None
        send_event.assert_not_awaited()
        on_room_ended.assert_not_called()

    @pytest.mark.asyncio
    async def test_leave_removes_queue_entry(self, pool, registry, send_event, connection_factory):
        """Test leaving while queued drops the entry."""
        # Setup
        lifecycle = LifecycleManager(pool, registry, send_event)
        alice = connection_factory("alice")
        pool.enqueue("alice", ChatType.TEXT, alice)

        # Execute
        await lifecycle.leave(alice)

        # Verify
        assert "alice" not in pool

    @pytest.mark.asyncio
    async def test_auto_requeue_uses_requested_chat_type(self, pool, registry, send_event, connection_factory):
        """Test the survivor is re-queued with what they originally asked for."""
        # Setup
        requeue = AsyncMock()
        lifecycle = LifecycleManager(pool, registry, send_event, requeue=requeue, auto_requeue=True)
        _, alice, bob = _paired(registry, connection_factory, (ChatType.VIDEO, ChatType.BOTH))

        # Execute
        await lifecycle.leave(alice)

        # Verify
        requeue.assert_awaited_once_with(bob, ChatType.BOTH)

    @pytest.mark.asyncio
    async def test_auto_requeue_skips_closed_survivor(self, pool, registry, send_event, connection_factory):
        """Test a survivor whose transport is gone is not re-queued."""
        # Setup
        requeue = AsyncMock()
        lifecycle = LifecycleManager(pool, registry, send_event, requeue=requeue, auto_requeue=True)
        _, alice, bob = _paired(registry, connection_factory)
        bob.is_open = False

        # Execute
        await lifecycle.leave(alice)

        # Verify
        requeue.assert_not_awaited()


class TestDisconnect:
    """Test cases for LifecycleManager.disconnect."""

    @pytest.mark.asyncio
    async def test_disconnect_runs_once(self, pool, registry, send_event, connection_factory):
        """Test abrupt disconnect ends the room exactly once."""
        # Setup
        lifecycle = LifecycleManager(pool, registry, send_event)
        room, alice, bob = _paired(registry, connection_factory)

        # Execute
        first = await lifecycle.disconnect(alice)
        second = await lifecycle.disconnect(alice)

        # Verify
        assert first is room
        assert second is None
        assert room.end_reason == "disconnected"
        assert alice.disconnected is True
        assert alice.is_open is False
        send_event.assert_awaited_once_with(bob, "user-left", {"roomId": room.room_id}, room_id=room.room_id)
