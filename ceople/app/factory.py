"""
FastAPI application factory.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..api.monitoring import monitoring_router
from ..api.real_time import realtime_router
from ..api.rooms import room_router
from ..config import AppConfig, get_config
from ..middleware.correlation_middleware import CorrelationMiddleware
from ..structured_logging.enhanced_logging_config import get_logger
from .lifespan import lifespan

logger = get_logger(__name__)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Configuration to run with; loaded from the environment when omitted

    Returns:
        FastAPI: The configured application
    """
    config = config or get_config()

    app = FastAPI(
        title="Ceople Relay",
        description="Stranger matchmaking and WebRTC signaling relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    cors = config.cors
    logger.info(
        "CORS configuration",
        allow_origins=cors.allow_origins,
        allow_methods=cors.allow_methods,
        allow_credentials=cors.allow_credentials,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.allow_origins,
        allow_credentials=cors.allow_credentials,
        allow_methods=cors.allow_methods,
        allow_headers=cors.allow_headers,
        expose_headers=["X-Correlation-ID"],
        max_age=cors.max_age,
    )
    app.add_middleware(CorrelationMiddleware)

    app.include_router(monitoring_router)
    app.include_router(room_router)
    app.include_router(realtime_router)

    return app
