"""
Tests for the matchmaker.

The matchmaker is synchronous; these tests drive it directly against a
pool and registry.
"""

import pytest

from ...realtime.connection_models import ChatType
from ...realtime.matchmaker import Matchmaker
from ...realtime.room_registry import RoomRegistry
from ...realtime.waiting_pool import WaitingPool


@pytest.fixture
def matchmaker():
    return Matchmaker(WaitingPool(), RoomRegistry())


class TestFindMatch:
    """Test cases for Matchmaker.find_match."""

    def test_first_user_waits(self, matchmaker, connection_factory):
        """Test an empty pool leaves the caller queued."""
        # Setup
        alice = connection_factory("alice")

        # Execute
        match = matchmaker.find_match(alice, ChatType.VIDEO)

        # Verify
        assert match is None
        assert "alice" in matchmaker.pool
        assert alice.room_id is None

    def test_second_user_is_paired_as_initiator(self, matchmaker, connection_factory):
        """Test the caller initiates and the waiter responds."""
        # Setup
        alice, bob = connection_factory("alice"), connection_factory("bob")
        matchmaker.find_match(alice, ChatType.VIDEO)

        # Execute
        match = matchmaker.find_match(bob, ChatType.VIDEO)

        # Verify
        assert match is not None
        assert match.initiator is bob
        assert match.responder is alice
        assert match.room.initiator_id == "bob"
        assert match.room.chat_type is ChatType.VIDEO
        assert alice.room_id == bob.room_id == match.room_id
        assert len(matchmaker.pool) == 0

    def test_incompatible_users_both_wait(self, matchmaker, connection_factory):
        """Test text and video requests are never paired."""
        # Setup
        alice, bob = connection_factory("alice"), connection_factory("bob")
        matchmaker.find_match(alice, ChatType.VIDEO)

        # Execute
        match = matchmaker.find_match(bob, ChatType.TEXT)

        # Verify
        assert match is None
        assert len(matchmaker.pool) == 2

    def test_wildcard_resolves_to_concrete_type(self, matchmaker, connection_factory):
        """Test a both request runs as the partner's concrete type."""
        # Setup
        alice, bob = connection_factory("alice"), connection_factory("bob")
        matchmaker.find_match(alice, ChatType.TEXT)

        # Execute
        match = matchmaker.find_match(bob, ChatType.BOTH)

        # Verify
        assert match.room.chat_type is ChatType.TEXT
        assert match.room.requested_chat_types == {"bob": ChatType.BOTH, "alice": ChatType.TEXT}

    def test_same_user_never_matched_with_self(self, matchmaker, connection_factory):
        """Test a second tab of the same user replaces the entry instead of pairing."""
        # Setup
        tab_one, tab_two = connection_factory("alice"), connection_factory("alice")
        matchmaker.find_match(tab_one, ChatType.VIDEO)

        # Execute
        match = matchmaker.find_match(tab_two, ChatType.VIDEO)

        # Verify
        assert match is None
        assert len(matchmaker.pool) == 1
        assert matchmaker.pool.get("alice").connection is tab_two

    def test_ghost_entries_are_purged(self, matchmaker, connection_factory):
        """Test a closed waiter is skipped and removed."""
        # Setup
        ghost, carol, bob = connection_factory("ghost"), connection_factory("carol"), connection_factory("bob")
        matchmaker.find_match(ghost, ChatType.VIDEO)
        matchmaker.find_match(carol, ChatType.TEXT)
        ghost.is_open = False

        # Execute
        match = matchmaker.find_match(bob, ChatType.VIDEO)

        # Verify
        assert match is None
        assert "ghost" not in matchmaker.pool
        assert "bob" in matchmaker.pool

    def test_exclude_skips_previous_partner(self, matchmaker, connection_factory):
        """Test an excluded waiter is passed over but stays queued."""
        # Setup
        alice, bob = connection_factory("alice"), connection_factory("bob")
        matchmaker.find_match(alice, ChatType.VIDEO)

        # Execute
        match = matchmaker.find_match(bob, ChatType.VIDEO, exclude=["alice"])

        # Verify
        assert match is None
        assert "alice" in matchmaker.pool


class TestRollback:
    """Test cases for Matchmaker.rollback."""

    def test_rollback_discards_room_and_requeues_initiator(self, matchmaker, connection_factory):
        """Test an unannounced room is undone."""
        # Setup
        alice, bob = connection_factory("alice"), connection_factory("bob")
        matchmaker.find_match(alice, ChatType.VIDEO)
        match = matchmaker.find_match(bob, ChatType.VIDEO)

        # Execute
        matchmaker.rollback(match)

        # Verify
        assert match.room_id not in matchmaker.registry
        assert alice.room_id is None
        assert bob.room_id is None
        assert "bob" in matchmaker.pool
        assert "alice" not in matchmaker.pool
        assert matchmaker.registry.stats()["totalRooms"] == 0
