from __future__ import annotations

import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel


class User(BaseModel):
    id: str


class Session(BaseModel):
    """Proof of the current authenticated identity."""

    user: User
    expires_at: Optional[datetime] = None

    @property
    def user_id(self) -> str:
        return self.user.id


class IdentityProvider(ABC):
    """Abstract source of the current session."""

    @abstractmethod
    async def get_session(self) -> Optional[Session]:
        """Return the active session or ``None`` when signed out."""

    async def get_user(self) -> Optional[User]:
        session = await self.get_session()
        return session.user if session else None


class StaticIdentityProvider(IdentityProvider):
    """Provider returning a fixed session, used by scripts and tests."""

    def __init__(self, session: Optional[Session] = None) -> None:
        self.session = session

    @classmethod
    def for_user(cls, user_id: str) -> "StaticIdentityProvider":
        return cls(Session(user=User(id=user_id)))

    async def get_session(self) -> Optional[Session]:
        return self.session


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def issue_token(user_id: str, secret: str, ttl: int = 86400, now: float | None = None) -> str:
    """Create a ``<user_id>.<expires>.<signature>`` session token."""

    if not secret:
        raise ValueError("A session secret is required to issue tokens")
    expires = int((now if now is not None else time.time()) + ttl)
    payload = f"{user_id}.{expires}"
    return f"{payload}.{_sign(payload, secret)}"


class SignedTokenIdentityProvider(IdentityProvider):
    """Session backed by an HMAC-SHA256 signed token.

    Missing, malformed, tampered or expired tokens yield no session rather
    than an error; callers decide whether a session is required.
    """

    def __init__(self, token: Optional[str], secret: str) -> None:
        self.token = token
        self.secret = secret

    async def get_session(self) -> Optional[Session]:
        if not self.token or not self.secret:
            return None
        try:
            user_id, expires_raw, signature = self.token.rsplit(".", 2)
            expires = int(expires_raw)
        except ValueError:
            return None
        if not user_id:
            return None
        expected = _sign(f"{user_id}.{expires_raw}", self.secret)
        if not hmac.compare_digest(expected, signature):
            return None
        if expires <= time.time():
            return None
        return Session(
            user=User(id=user_id),
            expires_at=datetime.fromtimestamp(expires, tz=timezone.utc),
        )
