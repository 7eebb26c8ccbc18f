"""
Structlog configuration for the relay server.

Every module obtains its logger through get_logger(__name__). Log entries
pass through the sanitizing and correlation processors before being rendered
as JSON (production) or key=value pairs (everything else) on stderr.
"""

import logging
import os
import sys
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.stdlib import BoundLogger, LoggerFactory

from .logging_processors import add_correlation_id, sanitize_sensitive_data

VALID_ENVIRONMENTS = ("local", "unit_test", "e2e_test", "production")


class _LoggingState:  # pylint: disable=too-few-public-methods  # Reason: Module state holder
    initialized: bool = False
    signature: tuple[Any, ...] | None = None


_logging_state = _LoggingState()


def detect_environment() -> str:
    """
    Detect the current environment.

    Returns:
        One of "local", "unit_test", "e2e_test" or "production"
    """
    if "pytest" in sys.modules:
        return "unit_test"

    env = os.getenv("LOGGING_ENVIRONMENT", "")
    if env in VALID_ENVIRONMENTS:
        return env
    return "local"


def configure_structlog(environment: str | None = None, log_level: str = "INFO", log_format: str | None = None) -> None:
    """
    Configure structlog processors and the standard library root handler.

    Args:
        environment: Environment name (auto-detected if None)
        log_level: Logging level name
        log_format: "json" or "human"; production defaults to json
    """
    if environment is None:
        environment = detect_environment()
    if log_format is None:
        log_format = "json" if environment == "production" else "human"

    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.handlers = []
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(level)

    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event", "logger"])

    structlog.configure(
        processors=[
            sanitize_sensitive_data,
            merge_contextvars,
            add_correlation_id,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=False,
    )


def setup_enhanced_logging(logging_config: dict[str, Any], *, force_reconfigure: bool = False) -> None:
    """
    Set up logging from the "logging" section of the application config.

    Args:
        logging_config: Dictionary with environment, level, format and disable_logging keys
        force_reconfigure: When True, reconfigure even if logging was already set up
    """
    signature = tuple(sorted((k, str(v)) for k, v in logging_config.items()))
    if _logging_state.initialized and not force_reconfigure and signature == _logging_state.signature:
        return

    environment = logging_config.get("environment") or detect_environment()
    log_level = logging_config.get("level", "INFO")

    if logging_config.get("disable_logging", False):
        configure_structlog(environment, "CRITICAL", logging_config.get("format"))
    else:
        configure_structlog(environment, log_level, logging_config.get("format"))
        _configure_uvicorn_logging()

    get_logger("ceople.structured_logging.setup").info(
        "Logging system initialized",
        environment=environment,
        log_level=log_level,
        log_format=logging_config.get("format"),
    )

    _logging_state.initialized = True
    _logging_state.signature = signature


def _configure_uvicorn_logging() -> None:
    """Route uvicorn's own loggers through the root handler."""
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True


def get_logger(name: str) -> Any:  # Returns BoundLogger but typed as Any for flexibility
    """
    Get a structlog logger with the specified name.

    This is the public API for obtaining loggers. Application code should use
    this function rather than calling structlog.get_logger() directly.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)
