"""
Bearer token helpers.

Tokens are HS256 JWTs issued by the external identity provider. The relay
only verifies them; create_access_token exists for local tooling and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from ..error_types import ErrorMessages, ErrorType
from ..exceptions import AuthenticationError
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 60


def create_access_token(
    data: dict[str, Any],
    secret_key: str,
    expires_delta: timedelta | None = None,
    algorithm: str = "HS256",
) -> str:
    """Create a signed access token carrying ``data`` plus an expiry."""
    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    token = jwt.encode(to_encode, secret_key, algorithm=algorithm)
    logger.debug("Access token created", subject=data.get("sub"))
    return token


def verify_access_token(
    token: str,
    secret_key: str | None,
    algorithm: str = "HS256",
    audience: str | None = None,
) -> dict[str, Any]:
    """
    Decode and validate an access token.

    Args:
        token: Encoded JWT
        secret_key: Verification secret; token mode is unavailable when None
        algorithm: Expected signing algorithm
        audience: Expected audience claim, if the provider sets one

    Returns:
        The decoded claims; ``sub`` is guaranteed to be a non-empty string

    Raises:
        AuthenticationError: If the token is expired, malformed or unverifiable
    """
    if not secret_key:
        raise AuthenticationError(
            "Token authentication is not configured",
            auth_type="token",
            details={"error_type": ErrorType.INVALID_TOKEN.value},
            user_friendly=ErrorMessages.INVALID_TOKEN,
        )

    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except ExpiredSignatureError as e:
        raise AuthenticationError(
            "Token has expired",
            auth_type="token",
            details={"error_type": ErrorType.TOKEN_EXPIRED.value},
            user_friendly=ErrorMessages.TOKEN_EXPIRED,
        ) from e
    except JWTError as e:
        raise AuthenticationError(
            f"Token verification failed: {e}",
            auth_type="token",
            details={"error_type": ErrorType.INVALID_TOKEN.value},
            user_friendly=ErrorMessages.INVALID_TOKEN,
        ) from e

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthenticationError(
            "Token has no subject",
            auth_type="token",
            details={"error_type": ErrorType.INVALID_TOKEN.value},
            user_friendly=ErrorMessages.INVALID_TOKEN,
        )
    return payload
