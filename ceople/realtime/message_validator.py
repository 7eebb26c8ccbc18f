"""
WebSocket frame validation.

Checks size, JSON depth and string lengths before the per-event pydantic
schema, so oversized or deeply nested frames never reach model parsing.
"""

import json
from typing import Any

from pydantic import ValidationError

from ..error_types import ErrorType
from ..exceptions import ValidationError as FrameValidationError
from ..structured_logging.enhanced_logging_config import get_logger
from .message_schemas import EVENT_SCHEMAS, EventData, InboundFrame

logger = get_logger(__name__)


class MessageValidationError(FrameValidationError):
    """Raised when a frame fails validation; logged once at warning level."""

    def __init__(self, message: str, error_type: ErrorType = ErrorType.INVALID_FORMAT):
        self.error_type = error_type
        super().__init__(message, details={"error_type": error_type.value})


class WebSocketMessageValidator:
    """
    Validates inbound frames for safety and shape.

    Implements:
    - Message size limits
    - JSON depth limits
    - String length limits
    - Per-event schema validation
    """

    MAX_MESSAGE_SIZE = 16 * 1024
    MAX_JSON_DEPTH = 10
    # SDP blobs are the largest strings a client legitimately sends
    MAX_JSON_STRING_LENGTH = 12000

    def __init__(self, max_message_size: int | None = None, max_json_depth: int | None = None):
        self.max_message_size = max_message_size or self.MAX_MESSAGE_SIZE
        self.max_json_depth = max_json_depth or self.MAX_JSON_DEPTH

    def validate_size(self, data: str) -> None:
        size = len(data.encode("utf-8"))
        if size > self.max_message_size:
            logger.warning("Message size exceeds limit", size=size, max_size=self.max_message_size)
            raise MessageValidationError(
                f"Message size {size} bytes exceeds maximum {self.max_message_size} bytes",
                error_type=ErrorType.MESSAGE_TOO_LARGE,
            )

    def validate_json_structure(self, message: Any) -> None:
        """
        Validate nesting depth and string lengths.

        Raises:
            MessageValidationError: If the structure exceeds a limit
        """
        depth = self._calculate_depth(message)
        if depth > self.max_json_depth:
            logger.warning("JSON depth exceeds limit", depth=depth, max_depth=self.max_json_depth)
            raise MessageValidationError(
                f"JSON depth {depth} exceeds maximum {self.max_json_depth}",
                error_type=ErrorType.INVALID_FORMAT,
            )
        self._validate_string_lengths(message)

    def _calculate_depth(self, obj: Any, current_depth: int = 0) -> int:
        if current_depth > self.max_json_depth:
            return current_depth
        if isinstance(obj, dict):
            if not obj:
                return current_depth
            return max(self._calculate_depth(v, current_depth + 1) for v in obj.values())
        if isinstance(obj, list):
            if not obj:
                return current_depth
            return max(self._calculate_depth(item, current_depth + 1) for item in obj)
        return current_depth

    def _validate_string_lengths(self, obj: Any) -> None:
        if isinstance(obj, dict):
            for key, value in obj.items():
                if isinstance(key, str) and len(key) > self.MAX_JSON_STRING_LENGTH:
                    raise MessageValidationError("String key too long", error_type=ErrorType.MESSAGE_TOO_LARGE)
                self._validate_string_lengths(value)
        elif isinstance(obj, list):
            for item in obj:
                self._validate_string_lengths(item)
        elif isinstance(obj, str) and len(obj) > self.MAX_JSON_STRING_LENGTH:
            raise MessageValidationError(
                f"String length {len(obj)} exceeds maximum {self.MAX_JSON_STRING_LENGTH}",
                error_type=ErrorType.MESSAGE_TOO_LARGE,
            )

    def parse_and_validate(self, data: str) -> tuple[str, EventData]:
        """
        Parse and validate a raw frame.

        Args:
            data: Raw text frame

        Returns:
            The event type and its validated data model

        Raises:
            MessageValidationError: If validation fails at any stage
        """
        self.validate_size(data)

        try:
            message = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON in frame", error=str(e))
            raise MessageValidationError(f"Invalid JSON: {e}", error_type=ErrorType.INVALID_FORMAT) from e

        if not isinstance(message, dict):
            raise MessageValidationError("Frame must be a JSON object", error_type=ErrorType.INVALID_FORMAT)

        self.validate_json_structure(message)

        event_type = message.get("type")
        if not isinstance(event_type, str) or event_type not in EVENT_SCHEMAS:
            raise MessageValidationError(f"Unknown event type: {event_type!r}", error_type=ErrorType.UNKNOWN_EVENT)

        try:
            frame = InboundFrame.model_validate(message)
            payload = EVENT_SCHEMAS[frame.type].model_validate(frame.data)
        except ValidationError as e:
            logger.warning("Schema validation failed", event_type=event_type, error_count=e.error_count())
            raise MessageValidationError(
                f"Invalid {event_type} payload: {e.errors(include_url=False, include_input=False)}",
                error_type=ErrorType.INVALID_INPUT,
            ) from e

        return frame.type, payload
