"""
End-to-end WebSocket tests against the full application.

Two or three clients share one TestClient, so every exchange below runs
through the real handshake, frame loop, matchmaker and relay.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from ...app.factory import create_app
from ...auth.tokens import create_access_token
from ...config import AppConfig
from ...config.models import SecurityConfig
from ..conftest import TEST_JWT_SECRET


@pytest.fixture
def client():
    with TestClient(create_app(AppConfig())) as test_client:
        yield test_client


def _receive_until(websocket, event_type, limit=10):
    for _ in range(limit):
        event = websocket.receive_json()
        if event["event_type"] == event_type:
            return event
    raise AssertionError(f"{event_type} not received")


class TestMatching:
    """Test cases for matchmaking over real sockets."""

    def test_two_video_guests_are_matched(self, client):
        """Test both sides learn the room and exactly one initiates."""
        with client.websocket_connect("/ws?guest_name=Alice") as alice:
            alice_id = alice.receive_json()["data"]["userId"]
            alice.send_json({"type": "join-queue", "data": {"chatType": "video"}})
            assert alice.receive_json()["event_type"] == "waiting-for-match"

            with client.websocket_connect("/ws?guest_name=Bob") as bob:
                bob_id = bob.receive_json()["data"]["userId"]
                bob.send_json({"type": "join-queue", "data": {"chatType": "video"}})

                bob_match = _receive_until(bob, "match-found")["data"]
                alice_match = _receive_until(alice, "match-found")["data"]

                assert bob_match["roomId"] == alice_match["roomId"]
                assert bob_match["chatType"] == "video"
                assert bob_match["isInitiator"] is True
                assert alice_match["isInitiator"] is False

                bob.send_json(
                    {
                        "type": "webrtc-signal",
                        "data": {"roomId": bob_match["roomId"], "signal": {"type": "offer", "sdp": "v=0"}},
                    }
                )
                relayed = _receive_until(alice, "webrtc-signal")["data"]
                assert relayed["fromUserId"] == bob_id
                assert relayed["signal"] == {"type": "offer", "sdp": "v=0"}

            left = _receive_until(alice, "user-left")
            assert left["data"] == {"roomId": alice_match["roomId"]}
            assert alice_id.startswith("guest-")

    def test_text_and_video_are_not_matched(self, client):
        """Test incompatible requests keep waiting."""
        with client.websocket_connect("/ws?guest_name=Alice") as alice:
            alice.receive_json()
            alice.send_json({"type": "join-queue", "data": {"chatType": "text"}})
            assert alice.receive_json()["event_type"] == "waiting-for-match"

            with client.websocket_connect("/ws?guest_name=Bob") as bob:
                bob.receive_json()
                bob.send_json({"type": "join-queue", "data": {"chatType": "video"}})
                assert bob.receive_json()["event_type"] == "waiting-for-match"

                bob.send_json({"type": "ping"})
                assert bob.receive_json()["event_type"] == "pong"

            alice.send_json({"type": "ping"})
            assert alice.receive_json()["event_type"] == "pong"

    def test_text_chat_and_leave(self, client):
        """Test messages relay and leave-room is acknowledged twice without a second notice."""
        with client.websocket_connect("/ws?guest_name=Alice") as alice, client.websocket_connect(
            "/ws?guest_name=Bob"
        ) as bob:
            alice.receive_json()
            bob.receive_json()
            alice.send_json({"type": "join-queue", "data": {"chatType": "text"}})
            alice.receive_json()
            bob.send_json({"type": "join-queue", "data": {"chatType": "either"}})
            room_id = _receive_until(bob, "match-found")["data"]["roomId"]
            assert _receive_until(alice, "match-found")["data"]["chatType"] == "text"

            alice.send_json({"type": "send-message", "data": {"roomId": room_id, "message": "hello"}})
            message = _receive_until(bob, "new-message")["data"]
            assert message["content"] == "hello"
            assert message["messageType"] == "text"

            bob.send_json({"type": "leave-room", "data": {"roomId": room_id}})
            assert _receive_until(bob, "room-left")["data"] == {"roomId": room_id}
            assert _receive_until(alice, "user-left")["data"] == {"roomId": room_id}

            bob.send_json({"type": "leave-room", "data": {"roomId": room_id}})
            assert _receive_until(bob, "room-left")["data"] == {"roomId": room_id}

            alice.send_json({"type": "ping"})
            assert alice.receive_json()["event_type"] == "pong"

    def test_invalid_frame_gets_error(self, client):
        """Test a malformed frame is answered and the connection stays usable."""
        with client.websocket_connect("/ws?guest_name=Alice") as alice:
            alice.receive_json()
            alice.send_text("{broken")

            error = alice.receive_json()
            assert error["event_type"] == "error"
            assert error["data"]["error_type"] == "invalid_format"

            alice.send_json({"type": "ping"})
            assert alice.receive_json()["event_type"] == "pong"


class TestHandshake:
    """Test cases for handshake authentication."""

    def test_missing_credentials_rejected(self, client):
        """Test a handshake without credentials is closed with 1008."""
        with client.websocket_connect("/ws") as websocket:
            error = websocket.receive_json()
            with pytest.raises(WebSocketDisconnect) as exc_info:
                websocket.receive_json()

        assert error["event_type"] == "error"
        assert error["data"]["error_type"] == "authentication_failed"
        assert exc_info.value.code == 1008

    def test_bad_token_rejected(self, client):
        """Test an invalid token is reported as such."""
        with client.websocket_connect("/ws?token=not-a-jwt") as websocket:
            error = websocket.receive_json()

        assert error["data"]["error_type"] == "invalid_token"

    def test_token_in_query(self, client):
        """Test a valid token yields an authenticated identity."""
        token = create_access_token({"sub": "user-42", "name": "Ada"}, TEST_JWT_SECRET)

        with client.websocket_connect(f"/ws?token={token}") as websocket:
            connected = websocket.receive_json()

        assert connected["data"] == {"userId": "user-42", "trustTier": "authenticated", "displayName": "Ada"}

    def test_token_in_subprotocol(self, client):
        """Test browsers can pass the token as a subprotocol."""
        token = create_access_token({"sub": "user-42"}, TEST_JWT_SECRET)

        with client.websocket_connect("/ws", subprotocols=["bearer", token]) as websocket:
            connected = websocket.receive_json()
            assert websocket.accepted_subprotocol == "bearer"

        assert connected["data"]["userId"] == "user-42"

    def test_guests_disabled(self):
        """Test guest handshakes are refused when guests are off."""
        config = AppConfig(security=SecurityConfig(jwt_secret=TEST_JWT_SECRET, allow_guests=False))

        with TestClient(create_app(config)) as client:
            with client.websocket_connect("/ws?guest_name=Alice") as websocket:
                error = websocket.receive_json()

        assert error["data"]["error_type"] == "guests_disabled"
