"""Identity providers supplying the current session."""

from .identity import (
    IdentityProvider,
    Session,
    SignedTokenIdentityProvider,
    StaticIdentityProvider,
    User,
    issue_token,
)

__all__ = [
    "IdentityProvider",
    "Session",
    "SignedTokenIdentityProvider",
    "StaticIdentityProvider",
    "User",
    "issue_token",
]
