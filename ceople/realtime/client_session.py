"""
Client session state machine.

The single client-side view of a chat session, driven by the server events
the relay emits. It decides which side creates the WebRTC offer from the
isInitiator flag in match-found, so both peers never offer at once.

States: idle -> queued -> matched -> negotiating -> connected | failed,
with leave / partner_left returning to idle.
"""

from enum import Enum
from typing import Any

from statemachine import State, StateMachine

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class ClientAction(Enum):
    """What the client's WebRTC layer should do after an event."""

    NONE = "none"
    SEND_OFFER = "send_offer"
    AWAIT_OFFER = "await_offer"
    SEND_ANSWER = "send_answer"
    APPLY_ANSWER = "apply_answer"
    ADD_ICE_CANDIDATE = "add_ice_candidate"
    OPEN_TEXT_CHAT = "open_text_chat"
    CLOSE_PEER = "close_peer"


class ClientSessionStateMachine(StateMachine):
    """
    Lifecycle of one client's chat session.

    Transitions:
    - idle/failed -> queued: join
    - queued -> queued: join (re-sent join-queue is idempotent)
    - queued -> matched: match_found
    - matched -> negotiating: begin_negotiation
    - matched -> connected: chat_ready (text rooms skip WebRTC)
    - negotiating -> connected: peer_connected
    - matched/negotiating -> failed: negotiation_failed
    - any session state -> idle: leave, partner_left
    - queued -> idle: timeout
    """

    idle = State("Idle", initial=True)
    queued = State("Queued")
    matched = State("Matched")
    negotiating = State("Negotiating")
    connected = State("Connected")
    failed = State("Failed")

    join = idle.to(queued) | failed.to(queued) | queued.to.itself()
    match_found = queued.to(matched)
    begin_negotiation = matched.to(negotiating)
    chat_ready = matched.to(connected)
    peer_connected = negotiating.to(connected)
    negotiation_failed = matched.to(failed) | negotiating.to(failed)
    partner_left = matched.to(idle) | negotiating.to(idle) | connected.to(idle) | failed.to(idle)
    leave = queued.to(idle) | matched.to(idle) | negotiating.to(idle) | connected.to(idle) | failed.to(idle)
    timeout = queued.to(idle)

    def __init__(self, user_id: str | None = None):
        # Attributes must exist before super().__init__() enters the initial state
        self.user_id = user_id
        self.room_id: str | None = None
        self.chat_type: str | None = None
        self.is_initiator: bool | None = None
        self.partner_id: str | None = None
        self.total_matches = 0
        super().__init__()

    def on_enter_state(self, state: State, event=None, **kwargs) -> None:
        logger.debug(
            "Client session state transition",
            user_id=self.user_id,
            trigger_event=str(event) if event else "initial",
            to_state=state.id,
            room_id=self.room_id,
        )

    def on_match_found(self, room_id: str, chat_type: str, is_initiator: bool) -> None:
        self.room_id = room_id
        self.chat_type = chat_type
        self.is_initiator = is_initiator
        self.partner_id = None
        self.total_matches += 1

    def on_enter_idle(self) -> None:
        self.room_id = None
        self.is_initiator = None
        self.partner_id = None

    @property
    def state_id(self) -> str:
        return self.current_state.id

    @property
    def uses_webrtc(self) -> bool:
        return self.chat_type in ("video", "both")


class ClientSession:
    """
    Feeds server event envelopes into the state machine.

    handle_event() returns the ClientAction the caller's WebRTC layer should
    perform; the peer-connection callbacks report the outcome back.
    """

    def __init__(self, user_id: str | None = None) -> None:
        self.machine = ClientSessionStateMachine(user_id)

    @property
    def state(self) -> str:
        return self.machine.state_id

    @property
    def room_id(self) -> str | None:
        return self.machine.room_id

    @property
    def is_initiator(self) -> bool | None:
        return self.machine.is_initiator

    @property
    def is_in_queue(self) -> bool:
        return self.machine.current_state == self.machine.queued

    @property
    def is_in_room(self) -> bool:
        return self.machine.room_id is not None

    def handle_event(self, event: dict[str, Any]) -> ClientAction:
        """
        Apply one server event envelope.

        Events that do not fit the current state are ignored.
        """
        event_type = event.get("event_type")
        data = event.get("data") or {}
        machine = self.machine

        if event_type == "connected":
            machine.user_id = data.get("userId", machine.user_id)
            return ClientAction.NONE

        if event_type == "waiting-for-match":
            if machine.current_state in (machine.idle, machine.failed, machine.queued):
                machine.join()
            return ClientAction.NONE

        if event_type == "match-found":
            return self._on_match_found(data)

        if event_type == "webrtc-signal":
            return self._on_signal(data)

        if event_type == "user-left":
            if data.get("roomId") == machine.room_id and machine.room_id is not None:
                machine.partner_left()
                return ClientAction.CLOSE_PEER
            return ClientAction.NONE

        if event_type in ("room-left", "queue-left"):
            if machine.current_state != machine.idle:
                machine.leave()
                return ClientAction.CLOSE_PEER if event_type == "room-left" else ClientAction.NONE
            return ClientAction.NONE

        if event_type == "match-timeout":
            if machine.current_state == machine.queued:
                machine.timeout()
            return ClientAction.NONE

        return ClientAction.NONE

    def _on_match_found(self, data: dict[str, Any]) -> ClientAction:
        machine = self.machine
        if machine.current_state not in (machine.idle, machine.failed, machine.queued):
            logger.warning("Ignored match-found outside the queue", state=machine.state_id, room_id=data.get("roomId"))
            return ClientAction.NONE
        if machine.current_state != machine.queued:
            # Server re-queued us after a partner left
            machine.join()

        machine.match_found(
            room_id=data.get("roomId"),
            chat_type=data.get("chatType"),
            is_initiator=bool(data.get("isInitiator")),
        )
        if not machine.uses_webrtc:
            machine.chat_ready()
            return ClientAction.OPEN_TEXT_CHAT
        if machine.is_initiator:
            machine.begin_negotiation()
            return ClientAction.SEND_OFFER
        return ClientAction.AWAIT_OFFER

    def _on_signal(self, data: dict[str, Any]) -> ClientAction:
        machine = self.machine
        signal = data.get("signal") or {}
        signal_type = signal.get("type") if isinstance(signal, dict) else None
        machine.partner_id = data.get("fromUserId") or machine.partner_id

        if signal_type == "offer":
            if machine.current_state == machine.matched and not machine.is_initiator:
                machine.begin_negotiation()
                return ClientAction.SEND_ANSWER
            return ClientAction.NONE
        if signal_type == "answer":
            if machine.current_state == machine.negotiating and machine.is_initiator:
                return ClientAction.APPLY_ANSWER
            return ClientAction.NONE
        if signal_type == "ice-candidate" or (isinstance(signal, dict) and "candidate" in signal):
            if machine.current_state in (machine.matched, machine.negotiating, machine.connected):
                return ClientAction.ADD_ICE_CANDIDATE
        return ClientAction.NONE

    def peer_connection_established(self) -> None:
        if self.machine.current_state == self.machine.negotiating:
            self.machine.peer_connected()

    def peer_connection_failed(self) -> None:
        if self.machine.current_state in (self.machine.matched, self.machine.negotiating):
            self.machine.negotiation_failed()
