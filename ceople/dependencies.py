"""
FastAPI dependency providers.

Routes depend on these instead of reaching into app.state directly.
"""

from fastapi import HTTPException, Request

from .container import ApplicationContainer
from .error_types import ErrorMessages
from .persistence.audit_store import AuditStore
from .realtime.connection_manager import ConnectionManager


def get_container(request: Request) -> ApplicationContainer:
    """
    Get the application container from app state.

    Raises:
        HTTPException: 503 if the application has not started
    """
    container = getattr(request.app.state, "container", None)
    if container is None or not container.is_initialized:
        raise HTTPException(status_code=503, detail=ErrorMessages.SYSTEM_UNAVAILABLE)
    return container


def get_connection_manager(request: Request) -> ConnectionManager:
    manager = get_container(request).connection_manager
    if manager is None:
        raise HTTPException(status_code=503, detail=ErrorMessages.SYSTEM_UNAVAILABLE)
    return manager


def get_audit_store(request: Request) -> AuditStore | None:
    return get_container(request).audit_store
