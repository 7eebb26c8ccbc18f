"""
Application container.

Builds the relay's services in dependency order and tears them down in
reverse. The lifespan creates one container per application and attaches it
to app.state; request handlers reach services through ceople.dependencies.
"""

import asyncio

from .auth.identity import IdentityAdapter
from .config import AppConfig, get_config
from .exceptions import ConfigurationError, DatabaseError
from .persistence.audit_store import AuditStore
from .realtime.connection_manager import ConnectionManager
from .realtime.rate_limiter import RateLimiter
from .structured_logging.enhanced_logging_config import get_logger, setup_enhanced_logging

logger = get_logger(__name__)


class ApplicationContainer:
    """Holds the configured services of one running application."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or get_config()
        self.identity_adapter: IdentityAdapter | None = None
        self.audit_store: AuditStore | None = None
        self.rate_limiter: RateLimiter | None = None
        self.connection_manager: ConnectionManager | None = None
        self._initialized = False
        self._initialization_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Create every service. Safe to call more than once."""
        async with self._initialization_lock:
            if self._initialized:
                return

            setup_enhanced_logging(self.config.logging.to_dict())
            logger.info("Initializing application container", **_describe(self.config))

            self.identity_adapter = IdentityAdapter(self.config.security)

            self.audit_store = AuditStore(self.config.database.url, echo=self.config.database.echo)
            try:
                await self.audit_store.initialize()
            except (ConfigurationError, DatabaseError):
                # Already logged; the relay runs without audit records
                logger.warning("Continuing without audit store")

            self.rate_limiter = RateLimiter(max_messages_per_minute=self.config.matchmaking.max_messages_per_minute)
            self.connection_manager = ConnectionManager(
                self.config.matchmaking,
                audit_store=self.audit_store,
                rate_limiter=self.rate_limiter,
            )

            self._initialized = True
            logger.info("Application container initialized", audit_enabled=self.audit_store.enabled)

    async def shutdown(self) -> None:
        """Close connections, then release the database."""
        if self.connection_manager is not None:
            await self.connection_manager.shutdown()
        if self.audit_store is not None:
            await self.audit_store.close()
        self._initialized = False
        logger.info("Application container shut down")

    @property
    def audit_degraded(self) -> bool:
        """A database was configured but the store could not start."""
        return bool(self.config.database.url) and (self.audit_store is None or not self.audit_store.enabled)


def _describe(config: AppConfig) -> dict:
    return {
        "auto_requeue": config.matchmaking.auto_requeue,
        "max_wait_seconds": config.matchmaking.max_wait_seconds,
        "allow_guests": config.security.allow_guests,
        "token_auth": config.security.jwt_secret is not None,
        "audit_configured": config.database.url is not None,
    }
