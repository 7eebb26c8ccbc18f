"""
WebSocket endpoint.

Credentials are read once at handshake from the ``token`` or
``guest_name`` query parameters, or from the Sec-WebSocket-Protocol header
as ``bearer, <token>``. A rejected handshake is accepted just long enough to
deliver an ``error`` event, then closed with 1008 (bad credentials) or
1013 (server not ready, or too many handshakes from one address).
"""

from fastapi import APIRouter, WebSocket

from ..auth.identity import Credentials
from ..error_types import ErrorMessages, ErrorType, create_websocket_error_response
from ..exceptions import AuthenticationError
from ..realtime.envelope import build_event
from ..realtime.websocket_handler import handle_websocket_connection
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])

POLICY_VIOLATION = 1008
TRY_AGAIN_LATER = 1013


def parse_credentials(websocket: WebSocket) -> tuple[Credentials, str | None]:
    """
    Extract handshake credentials.

    Returns:
        The credentials and the subprotocol to echo back on accept, if any
    """
    token = websocket.query_params.get("token")
    guest_name = websocket.query_params.get("guest_name")
    subprotocol = None

    header = websocket.headers.get("sec-websocket-protocol")
    if header:
        parts = [p.strip() for p in header.split(",") if p.strip()]
        if parts and parts[0].lower() == "bearer":
            subprotocol = parts[0]
            if len(parts) > 1:
                token = parts[1]

    return Credentials(token=token or None, guest_name=guest_name), subprotocol


async def _reject(websocket: WebSocket, subprotocol: str | None, payload: dict, code: int) -> None:
    await websocket.accept(subprotocol=subprotocol)
    await websocket.send_json(build_event("error", payload))
    await websocket.close(code=code)


@realtime_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Authenticate the handshake and serve the connection."""
    credentials, subprotocol = parse_credentials(websocket)

    container = getattr(websocket.app.state, "container", None)
    if container is None or container.connection_manager is None or container.identity_adapter is None:
        await _reject(
            websocket,
            subprotocol,
            create_websocket_error_response(
                ErrorType.INTERNAL_ERROR, "Service not initialized", ErrorMessages.SYSTEM_UNAVAILABLE
            ),
            TRY_AGAIN_LATER,
        )
        return

    connection_manager = container.connection_manager
    remote_addr = websocket.client.host if websocket.client else "unknown"
    if not connection_manager.rate_limiter.check_connection_rate_limit(remote_addr):
        await _reject(
            websocket,
            subprotocol,
            create_websocket_error_response(
                ErrorType.RATE_LIMIT_EXCEEDED, "Too many connection attempts", ErrorMessages.TOO_MANY_MESSAGES
            ),
            TRY_AGAIN_LATER,
        )
        return

    try:
        identity = container.identity_adapter.authenticate(credentials)
    except AuthenticationError as e:
        error_type = ErrorType(e.details.get("error_type", ErrorType.AUTHENTICATION_FAILED.value))
        await _reject(
            websocket,
            subprotocol,
            create_websocket_error_response(error_type, e.message, e.user_friendly, {"auth_type": e.auth_type}),
            POLICY_VIOLATION,
        )
        return

    await websocket.accept(subprotocol=subprotocol)
    logger.info("WebSocket connection accepted", user_id=identity.user_id, remote_addr=remote_addr)
    await handle_websocket_connection(websocket, identity, connection_manager)
