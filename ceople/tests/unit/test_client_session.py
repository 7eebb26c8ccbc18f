"""
Tests for the client session state machine.

Each test feeds the envelopes a client would receive and checks which side
ends up creating the WebRTC offer.
"""

import pytest
from statemachine.exceptions import TransitionNotAllowed

from ...realtime.client_session import ClientAction, ClientSession, ClientSessionStateMachine


def _event(event_type, **data):
    return {"event_type": event_type, "data": data}


class TestStateMachineTransitions:
    """Test cases for the raw transitions."""

    def test_starts_idle(self):
        """Test a new session starts idle."""
        machine = ClientSessionStateMachine("alice")

        assert machine.state_id == "idle"

    def test_join_is_idempotent_while_queued(self):
        """Test re-sending join-queue keeps the session queued."""
        # Setup
        machine = ClientSessionStateMachine("alice")
        machine.join()

        # Execute
        machine.join()

        # Verify
        assert machine.state_id == "queued"

    def test_cannot_connect_without_match(self):
        """Test peer_connected from idle is refused."""
        machine = ClientSessionStateMachine("alice")

        with pytest.raises(TransitionNotAllowed):
            machine.peer_connected()


class TestVideoSession:
    """Test cases for a video match."""

    def test_initiator_sends_offer(self):
        """Test isInitiator true makes this side create the offer."""
        # Setup
        session = ClientSession("bob")
        session.handle_event(_event("waiting-for-match", chatType="video"))

        # Execute
        action = session.handle_event(_event("match-found", roomId="r1", chatType="video", isInitiator=True))

        # Verify
        assert action is ClientAction.SEND_OFFER
        assert session.state == "negotiating"
        assert session.room_id == "r1"
        assert session.is_initiator is True

    def test_responder_waits_for_offer_then_answers(self):
        """Test isInitiator false waits and answers the partner's offer."""
        # Setup
        session = ClientSession("alice")
        session.handle_event(_event("waiting-for-match", chatType="video"))

        # Execute
        first = session.handle_event(_event("match-found", roomId="r1", chatType="video", isInitiator=False))
        second = session.handle_event(
            _event("webrtc-signal", signal={"type": "offer", "sdp": "v=0"}, fromUserId="bob", targetUserId=None)
        )

        # Verify
        assert first is ClientAction.AWAIT_OFFER
        assert second is ClientAction.SEND_ANSWER
        assert session.state == "negotiating"

    def test_full_negotiation_reaches_connected(self):
        """Test answer, ICE and connection establishment."""
        # Setup
        session = ClientSession("bob")
        session.handle_event(_event("waiting-for-match"))
        session.handle_event(_event("match-found", roomId="r1", chatType="video", isInitiator=True))

        # Execute
        answer = session.handle_event(_event("webrtc-signal", signal={"type": "answer", "sdp": "v=0"}))
        ice = session.handle_event(_event("webrtc-signal", signal={"type": "ice-candidate", "candidate": {}}))
        session.peer_connection_established()

        # Verify
        assert answer is ClientAction.APPLY_ANSWER
        assert ice is ClientAction.ADD_ICE_CANDIDATE
        assert session.state == "connected"

    def test_partner_left_closes_peer(self):
        """Test user-left for the current room returns to idle."""
        # Setup
        session = ClientSession("bob")
        session.handle_event(_event("waiting-for-match"))
        session.handle_event(_event("match-found", roomId="r1", chatType="video", isInitiator=True))

        # Execute
        action = session.handle_event(_event("user-left", roomId="r1"))

        # Verify
        assert action is ClientAction.CLOSE_PEER
        assert session.state == "idle"
        assert session.room_id is None

    def test_user_left_for_other_room_ignored(self):
        """Test a stale user-left does not tear down the new room."""
        session = ClientSession("bob")
        session.handle_event(_event("waiting-for-match"))
        session.handle_event(_event("match-found", roomId="r2", chatType="video", isInitiator=False))

        assert session.handle_event(_event("user-left", roomId="r1")) is ClientAction.NONE
        assert session.room_id == "r2"

    def test_negotiation_failure(self):
        """Test a failed peer connection moves to failed and can re-join."""
        # Setup
        session = ClientSession("bob")
        session.handle_event(_event("waiting-for-match"))
        session.handle_event(_event("match-found", roomId="r1", chatType="video", isInitiator=True))

        # Execute
        session.peer_connection_failed()
        session.handle_event(_event("waiting-for-match"))

        # Verify
        assert session.is_in_queue


class TestTextSession:
    """Test cases for a text match."""

    def test_text_match_opens_chat(self):
        """Test text rooms skip WebRTC entirely."""
        # Setup
        session = ClientSession("alice")
        session.handle_event(_event("waiting-for-match", chatType="text"))

        # Execute
        action = session.handle_event(_event("match-found", roomId="r1", chatType="text", isInitiator=True))

        # Verify
        assert action is ClientAction.OPEN_TEXT_CHAT
        assert session.state == "connected"

    def test_match_found_while_idle_after_requeue(self):
        """Test a server-side re-queue delivers match-found without waiting-for-match."""
        session = ClientSession("alice")

        action = session.handle_event(_event("match-found", roomId="r1", chatType="text", isInitiator=False))

        assert action is ClientAction.OPEN_TEXT_CHAT
        assert session.is_in_room

    def test_match_timeout_returns_to_idle(self):
        """Test a queue timeout leaves the queue."""
        session = ClientSession("alice")
        session.handle_event(_event("waiting-for-match", chatType="text"))

        session.handle_event(_event("match-timeout", chatType="text", waitedSeconds=61))

        assert session.state == "idle"

    def test_room_left_acknowledgement(self):
        """Test the leave acknowledgement returns to idle."""
        session = ClientSession("alice")
        session.handle_event(_event("match-found", roomId="r1", chatType="text", isInitiator=False))

        action = session.handle_event(_event("room-left", roomId="r1"))

        assert action is ClientAction.CLOSE_PEER
        assert session.state == "idle"
