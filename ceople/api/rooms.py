"""
Room history, session statistics and feedback routes.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from ..dependencies import get_audit_store, get_connection_manager
from ..error_types import ErrorMessages
from ..exceptions import DatabaseError
from ..models.api import (
    FeedbackRequest,
    FeedbackResponse,
    RoomMessagesResponse,
    SessionStatsResponse,
)
from ..persistence.audit_store import AuditStore
from ..realtime.connection_manager import ConnectionManager
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

room_router = APIRouter(prefix="/api", tags=["rooms"])


@room_router.get("/rooms/{room_id}/messages", response_model=RoomMessagesResponse)
async def get_room_messages(
    room_id: str,
    connection_manager: ConnectionManager = Depends(get_connection_manager),
    audit_store: AuditStore | None = Depends(get_audit_store),
) -> RoomMessagesResponse:
    """
    Messages of a room in send order.

    Without an audit store there is no history, so a live room returns an
    empty list.
    """
    messages = None
    if audit_store is not None and audit_store.enabled:
        try:
            messages = await audit_store.list_messages(room_id)
        except DatabaseError as e:
            raise HTTPException(status_code=503, detail=e.user_friendly) from e

    if messages is None:
        if room_id not in connection_manager.registry:
            raise HTTPException(status_code=404, detail=ErrorMessages.ROOM_NOT_FOUND)
        messages = []

    return RoomMessagesResponse.model_validate({"roomId": room_id, "messages": messages})


@room_router.get("/chat-sessions/stats", response_model=SessionStatsResponse)
async def get_session_stats(
    connection_manager: ConnectionManager = Depends(get_connection_manager),
    audit_store: AuditStore | None = Depends(get_audit_store),
) -> SessionStatsResponse:
    """Room totals from the audit store, with the live active count."""
    stats = connection_manager.registry.stats()
    if audit_store is not None and audit_store.enabled:
        try:
            stored = await audit_store.session_stats()
        except DatabaseError:
            logger.warning("Serving session statistics from memory only")
            stored = None
        if stored is not None:
            stats.update(stored)
    return SessionStatsResponse.model_validate(stats)


@room_router.post("/feedback", response_model=FeedbackResponse, status_code=201)
async def submit_feedback(
    feedback: FeedbackRequest,
    request: Request,
    audit_store: AuditStore | None = Depends(get_audit_store),
) -> FeedbackResponse:
    """Store a post-chat rating."""
    if audit_store is None or not audit_store.enabled:
        raise HTTPException(status_code=503, detail="Feedback storage is not available")

    stored = await audit_store.record_feedback(
        feedback.rating,
        user_id=feedback.user_id,
        room_id=feedback.room_id,
        chat_type=feedback.chat_type.value if feedback.chat_type else None,
    )
    if stored is None:
        raise HTTPException(status_code=503, detail=ErrorMessages.SYSTEM_UNAVAILABLE)

    logger.info(
        "Feedback recorded",
        rating=feedback.rating,
        room_id=feedback.room_id,
        remote_addr=request.client.host if request.client else None,
    )
    return FeedbackResponse.model_validate(stored)
