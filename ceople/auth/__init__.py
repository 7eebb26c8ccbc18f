"""Identity resolution for inbound connections."""

from .identity import Credentials, IdentityAdapter, TrustTier, UserIdentity

__all__ = ["Credentials", "IdentityAdapter", "TrustTier", "UserIdentity"]
