"""
Health endpoint for deployment tooling.
"""

from fastapi import APIRouter, Request

from .. import __version__
from ..models.health import ConnectionsComponent, HealthResponse, HealthStatus
from ..realtime.envelope import utc_now_z

monitoring_router = APIRouter(tags=["monitoring"])


@monitoring_router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """
    Liveness and current connection counts.

    Synchronous and free of I/O. Reports degraded when a configured audit
    database failed to start, unhealthy before the application has started.
    """
    container = getattr(request.app.state, "container", None)
    manager = container.connection_manager if container is not None else None

    if manager is None:
        return HealthResponse(
            status=HealthStatus.UNHEALTHY,
            timestamp=utc_now_z(),
            uptime_seconds=0.0,
            version=__version__,
            connections=ConnectionsComponent(active=0, queued=0, active_rooms=0),
        )

    status = HealthStatus.DEGRADED if container.audit_degraded else HealthStatus.HEALTHY
    return HealthResponse(
        status=status,
        timestamp=utc_now_z(),
        uptime_seconds=round(manager.uptime_seconds(), 3),
        version=__version__,
        connections=ConnectionsComponent(**manager.get_stats()),
    )
