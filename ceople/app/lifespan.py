"""
Application lifecycle.

Startup builds the ApplicationContainer and starts the maintenance loop;
shutdown stops the loop, then closes connections and the audit store.
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from datetime import timedelta

from fastapi import FastAPI

from ..container import ApplicationContainer
from ..realtime.connection_manager import ConnectionManager
from ..realtime.room_registry import RECENT_WINDOW
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


async def run_maintenance_once(connection_manager: ConnectionManager, ended_room_retention: timedelta) -> None:
    """One pass of queue timeouts, ended-room pruning and rate limiter cleanup."""
    await connection_manager.sweep_expired()
    connection_manager.registry.prune_ended(ended_room_retention)
    connection_manager.rate_limiter.cleanup_old_attempts()


async def maintenance_loop(
    connection_manager: ConnectionManager,
    interval_seconds: float,
    ended_room_retention: timedelta = RECENT_WINDOW,
) -> None:
    """Run maintenance every interval_seconds until cancelled."""
    logger.info("Maintenance loop started", interval_seconds=interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_maintenance_once(connection_manager, ended_room_retention)
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: one failed pass must not stop later sweeps
            logger.error("Maintenance pass failed", error=str(e), error_type=type(e).__name__, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the relay's services."""
    container = ApplicationContainer(getattr(app.state, "config", None))
    await container.initialize()
    app.state.container = container

    assert container.connection_manager is not None
    maintenance_task = asyncio.create_task(
        maintenance_loop(container.connection_manager, container.config.matchmaking.sweep_interval_seconds)
    )
    logger.info("Relay server started")

    try:
        yield
    finally:
        maintenance_task.cancel()
        with suppress(asyncio.CancelledError):
            await maintenance_task
        await container.shutdown()
        logger.info("Relay server stopped")
