"""Session issuer: the boundary to the host's session system.

The exchange never handles the scanning device's credentials. It only needs
two capabilities from the host: authenticate an incoming session token into
an ``Identity``, and mint a fresh, independent session for a user id.
``JWTSessionIssuer`` is a self-contained default built on PyJWT.
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

import jwt

from qrlogin.utils import utc_now

UserLoader = Callable[[str], Awaitable[dict[str, Any] | None]]


@dataclass(frozen=True, slots=True)
class Identity:
    """An authenticated caller, as established by the host's session system."""

    user_id: str
    user: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class IssuedSession:
    """A newly minted session for the requesting device."""

    token: str
    user_id: str
    expires_at: datetime
    session_id: str | None = None
    user: dict[str, Any] | None = None


class SessionIssueError(Exception):
    """The session system refused to mint a session."""


class UserNotFoundError(SessionIssueError):
    """The user no longer exists in the host application."""


@runtime_checkable
class SessionIssuer(Protocol):
    async def create_session(self, user_id: str) -> IssuedSession:
        """Mint a brand-new session bound to ``user_id``."""
        ...

    async def authenticate(self, token: str) -> Identity | None:
        """Resolve a presented session token, or None if it is not valid."""
        ...


class JWTSessionIssuer:
    """Stateless HS256 sessions signed with a shared secret.

    Args:
        secret: HMAC signing key (at least 32 characters).
        ttl_seconds: Session lifetime (default 7 days).
        issuer: JWT ``iss`` claim.
        user_loader: Optional async callable returning the user profile for a
            user id. When set, unknown users cannot authenticate and cannot be
            issued sessions.
    """

    algorithm = "HS256"

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = 60 * 60 * 24 * 7,
        issuer: str = "qrlogin",
        user_loader: UserLoader | None = None,
    ) -> None:
        if len(secret) < 32:
            raise ValueError("JWT session secret must be at least 32 characters")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._secret = secret
        self._ttl_seconds = ttl_seconds
        self._issuer = issuer
        self._user_loader = user_loader

    async def create_session(self, user_id: str) -> IssuedSession:
        user = None
        if self._user_loader is not None:
            user = await self._user_loader(user_id)
            if user is None:
                raise UserNotFoundError(f"User {user_id} not found")

        now = utc_now()
        expires_at = now + timedelta(seconds=self._ttl_seconds)
        session_id = str(uuid.uuid4())
        payload = {
            "sub": user_id,
            "sid": session_id,
            "iat": now,
            "exp": expires_at,
            "iss": self._issuer,
            "amr": ["qr"],
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        return IssuedSession(
            token=token,
            user_id=user_id,
            expires_at=expires_at,
            session_id=session_id,
            user=user,
        )

    async def authenticate(self, token: str) -> Identity | None:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self._issuer,
                options={"require": ["sub", "exp", "iat", "iss"]},
            )
        except jwt.InvalidTokenError:
            return None

        user_id = payload["sub"]
        user = None
        if self._user_loader is not None:
            user = await self._user_loader(user_id)
            if user is None:
                return None
        return Identity(user_id=user_id, user=user)
