"""
Identity adapter.

Resolves the credentials presented at WebSocket handshake into a stable user
identifier and a trust tier. Runs once per connection, never per message.
"""

import uuid
from dataclasses import dataclass
from enum import Enum

from ..config.models import SecurityConfig
from ..error_types import ErrorMessages, ErrorType
from ..exceptions import AuthenticationError
from ..structured_logging.enhanced_logging_config import get_logger
from .tokens import verify_access_token

logger = get_logger(__name__)

GUEST_ID_PREFIX = "guest-"


class TrustTier(str, Enum):
    """How much the relay trusts a user identifier."""

    AUTHENTICATED = "authenticated"
    GUEST = "guest"


@dataclass(frozen=True)
class Credentials:
    """Credentials presented at handshake; at most one field is used."""

    token: str | None = None
    guest_name: str | None = None


@dataclass(frozen=True)
class UserIdentity:
    """A resolved user."""

    user_id: str
    trust_tier: TrustTier
    display_name: str

    @property
    def is_guest(self) -> bool:
        return self.trust_tier is TrustTier.GUEST


def generate_guest_id() -> str:
    """Return a fresh guest identifier; never reused across connections."""
    return f"{GUEST_ID_PREFIX}{uuid.uuid4().hex}"


class IdentityAdapter:
    """Turns handshake credentials into a UserIdentity."""

    def __init__(self, security: SecurityConfig) -> None:
        self.security = security

    def authenticate(self, credentials: Credentials) -> UserIdentity:
        """
        Resolve credentials to a user identity.

        A token takes precedence over a guest name when both are present.

        Raises:
            AuthenticationError: Invalid token, guests disabled, or no usable credentials
        """
        if credentials.token:
            return self._authenticate_token(credentials.token)
        if credentials.guest_name is not None:
            return self._authenticate_guest(credentials.guest_name)

        raise AuthenticationError(
            "No credentials supplied",
            auth_type="none",
            details={"error_type": ErrorType.AUTHENTICATION_FAILED.value},
            user_friendly=ErrorMessages.AUTHENTICATION_REQUIRED,
        )

    def _authenticate_token(self, token: str) -> UserIdentity:
        claims = verify_access_token(
            token,
            self.security.jwt_secret,
            algorithm=self.security.jwt_algorithm,
            audience=self.security.jwt_audience,
        )
        user_id = claims["sub"]
        display_name = claims.get("name") or claims.get("preferred_username") or user_id
        logger.info("Authenticated connection", user_id=user_id, trust_tier=TrustTier.AUTHENTICATED.value)
        return UserIdentity(user_id=user_id, trust_tier=TrustTier.AUTHENTICATED, display_name=str(display_name))

    def _authenticate_guest(self, guest_name: str) -> UserIdentity:
        if not self.security.allow_guests:
            raise AuthenticationError(
                "Guest connections are disabled",
                auth_type="guest",
                details={"error_type": ErrorType.GUESTS_DISABLED.value},
                user_friendly=ErrorMessages.GUESTS_DISABLED,
            )

        name = " ".join(guest_name.split())
        if not name or len(name) > self.security.guest_name_max_length or not name.isprintable():
            raise AuthenticationError(
                "Invalid guest display name",
                auth_type="guest",
                details={"error_type": ErrorType.AUTHENTICATION_FAILED.value, "length": len(name)},
                user_friendly=ErrorMessages.INVALID_GUEST_NAME,
            )

        user_id = generate_guest_id()
        logger.info("Guest connection accepted", user_id=user_id, trust_tier=TrustTier.GUEST.value)
        return UserIdentity(user_id=user_id, trust_tier=TrustTier.GUEST, display_name=name)
