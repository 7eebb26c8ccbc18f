"""
Tests for outbound event envelopes.
"""

from unittest.mock import Mock

from ...realtime.envelope import build_event, utc_now_z


class TestBuildEvent:
    """Test cases for build_event."""

    def test_envelope_shape(self):
        """Test the envelope carries type, timestamp, sequence and data."""
        event = build_event("pong", {"ok": True}, sequence_number=7)

        assert event["event_type"] == "pong"
        assert event["sequence_number"] == 7
        assert event["data"] == {"ok": True}
        assert event["timestamp"].endswith("Z")
        assert "room_id" not in event

    def test_room_scoped_event(self):
        """Test room_id is included only when given."""
        event = build_event("user-left", {"roomId": "r1"}, room_id="r1", sequence_number=1)

        assert event["room_id"] == "r1"

    def test_uses_connection_manager_counter(self):
        """Test the manager's sequence is used when present."""
        manager = Mock()
        manager._get_next_sequence.return_value = 42

        event = build_event("pong", connection_manager=manager)

        assert event["sequence_number"] == 42
        assert event["data"] == {}

    def test_global_counter_is_monotonic(self):
        """Test the fallback counter never repeats."""
        first = build_event("pong")["sequence_number"]
        second = build_event("pong")["sequence_number"]

        assert second > first

    def test_utc_now_z_format(self):
        """Test timestamps use millisecond precision and a Z suffix."""
        stamp = utc_now_z()

        assert stamp.endswith("Z")
        assert "." in stamp
        assert len(stamp.split(".")[1]) == 4
