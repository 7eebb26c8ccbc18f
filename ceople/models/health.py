"""
Health endpoint models.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ConnectionsComponent(BaseModel):
    """Live relay counters."""

    active: int = Field(..., description="Open WebSocket connections")
    queued: int = Field(..., description="Users waiting for a match")
    active_rooms: int = Field(..., description="Rooms currently in progress")


class HealthResponse(BaseModel):
    """Process liveness and current load."""

    status: HealthStatus = Field(..., description="Overall health status")
    timestamp: str = Field(..., description="ISO-8601 timestamp of the check")
    uptime_seconds: float = Field(..., description="Server uptime in seconds")
    version: str = Field(..., description="Server version")
    connections: ConnectionsComponent = Field(..., description="Relay counters")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "timestamp": "2026-01-12T15:30:45.123Z",
                "uptime_seconds": 12345.67,
                "version": "0.4.0",
                "connections": {"active": 12, "queued": 3, "active_rooms": 4},
            }
        }
    )
