"""
Structured logging package for the relay server.

All imports should use explicit paths like
'from ceople.structured_logging.enhanced_logging_config import get_logger'.
The directory is not called 'logging' to avoid shadowing the standard library.
"""

__all__: list[str] = []
