"""
Per-connection WebSocket loop.

Reads text frames, validates them, and dispatches each to the connection
manager. Frames from one connection are handled one at a time, which keeps
relayed signals in the order the client sent them.
"""

from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from ..auth.identity import UserIdentity
from ..error_types import ErrorMessages, ErrorType
from ..structured_logging.enhanced_logging_config import get_logger
from ..structured_logging.logging_context import bind_request_context, clear_request_context
from .connection_manager import ConnectionManager
from .connection_models import Connection
from .message_schemas import (
    EventData,
    JoinQueueData,
    LeaveRoomData,
    SendMessageData,
    TypingData,
    WebRTCSignalData,
)
from .message_validator import MessageValidationError, WebSocketMessageValidator

logger = get_logger(__name__)

RATE_LIMITED_EVENTS = {"send-message", "typing"}

_validator = WebSocketMessageValidator()


def get_message_validator() -> WebSocketMessageValidator:
    return _validator


async def dispatch_event(
    connection_manager: ConnectionManager, connection: Connection, event_type: str, payload: EventData
) -> None:
    """Route one validated client event."""
    if event_type == "join-queue":
        assert isinstance(payload, JoinQueueData)
        await connection_manager.join_queue(connection, payload.chat_type)
    elif event_type == "leave-queue":
        await connection_manager.leave_queue(connection)
    elif event_type == "send-message":
        assert isinstance(payload, SendMessageData)
        await connection_manager.send_message(connection, payload.room_id, payload.message, payload.message_type)
    elif event_type == "webrtc-signal":
        assert isinstance(payload, WebRTCSignalData)
        await connection_manager.relay_signal(connection, payload.room_id, payload.signal, payload.target_user_id)
    elif event_type == "typing":
        assert isinstance(payload, TypingData)
        await connection_manager.send_typing(connection, payload.room_id, payload.is_typing)
    elif event_type == "leave-room":
        assert isinstance(payload, LeaveRoomData)
        await connection_manager.leave_room(connection, payload.room_id)
    elif event_type == "ping":
        await connection_manager.send_event(connection, "pong", {})


async def _handle_frame(connection_manager: ConnectionManager, connection: Connection, data: str) -> None:
    try:
        event_type, payload = get_message_validator().parse_and_validate(data)
    except MessageValidationError as e:
        await connection_manager.send_error(
            connection,
            e.error_type,
            e.message,
            ErrorMessages.UNKNOWN_EVENT if e.error_type is ErrorType.UNKNOWN_EVENT else ErrorMessages.INVALID_FORMAT,
        )
        return

    if event_type in RATE_LIMITED_EVENTS and not connection_manager.rate_limiter.check_message_rate_limit(
        connection.connection_id
    ):
        info: dict[str, Any] = connection_manager.rate_limiter.get_message_rate_limit_info(connection.connection_id)
        await connection_manager.send_error(
            connection,
            ErrorType.RATE_LIMIT_EXCEEDED,
            f"Message rate limit exceeded. Limit: {info['max_attempts']} per minute",
            ErrorMessages.TOO_MANY_MESSAGES,
            {"rate_limit_info": info},
        )
        return

    await dispatch_event(connection_manager, connection, event_type, payload)


async def handle_websocket_connection(
    websocket: WebSocket, identity: UserIdentity, connection_manager: ConnectionManager
) -> None:
    """
    Serve an accepted, authenticated WebSocket until it closes.

    Disconnect cleanup always runs, whether the client left cleanly or the
    transport failed.
    """
    connection = await connection_manager.connect(websocket, identity)
    bind_request_context(user_id=identity.user_id, connection_id=connection.connection_id)
    try:
        while connection.is_open:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect as e:
                logger.info("WebSocket disconnected", user_id=identity.user_id, code=e.code)
                break
            except RuntimeError as e:
                # Starlette raises RuntimeError once the socket is closed underneath us
                logger.warning("WebSocket connection lost", user_id=identity.user_id, error=str(e))
                break
            except KeyError:
                # Binary frame; the protocol is text-only
                await connection_manager.send_error(
                    connection, ErrorType.INVALID_FORMAT, "Binary frames are not supported", ErrorMessages.INVALID_FORMAT
                )
                continue

            try:
                await _handle_frame(connection_manager, connection, data)
            except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: one bad frame must not end the connection
                logger.error(
                    "Error handling WebSocket frame",
                    user_id=identity.user_id,
                    connection_id=connection.connection_id,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                await connection_manager.send_error(
                    connection,
                    ErrorType.INTERNAL_ERROR,
                    "Internal server error",
                    ErrorMessages.INTERNAL_ERROR,
                    {"error_type": type(e).__name__},
                )
    finally:
        connection.is_open = False
        await connection_manager.handle_disconnect(connection)
        clear_request_context()
