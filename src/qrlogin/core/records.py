"""QR token record, lifecycle states, and the QR payload."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any


class TokenState(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    CLAIMED = "claimed"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class QRTokenRecord:
    """Snapshot of one QR token. Stores hand out copies, never live objects."""

    id: str
    secret_hash: str
    created_at: datetime
    expires_at: datetime
    used: bool = False
    user_id: str | None = None
    user: dict[str, Any] | None = None
    verified_at: datetime | None = None
    session_creation_token: str | None = None
    session_creation_token_expires_at: datetime | None = None
    claimed_at: datetime | None = None

    def state(self, now: datetime) -> TokenState:
        """Lifecycle state at ``now``.

        An unverified token dies with the first TTL; a verified one with the
        handoff TTL, independently of the first.
        """
        if self.claimed_at is not None:
            return TokenState.CLAIMED
        if not self.used:
            return TokenState.EXPIRED if now > self.expires_at else TokenState.PENDING
        if (
            self.session_creation_token is None
            or self.session_creation_token_expires_at is None
            or now > self.session_creation_token_expires_at
        ):
            return TokenState.EXPIRED
        return TokenState.VERIFIED

    def is_dead(self, now: datetime) -> bool:
        return self.state(now) in (TokenState.EXPIRED, TokenState.CLAIMED)

    def verified(
        self,
        *,
        user_id: str,
        verified_at: datetime,
        session_creation_token: str,
        session_creation_token_expires_at: datetime,
        user: dict[str, Any] | None = None,
    ) -> QRTokenRecord:
        return replace(
            self,
            used=True,
            user_id=user_id,
            user=user,
            verified_at=verified_at,
            session_creation_token=session_creation_token,
            session_creation_token_expires_at=session_creation_token_expires_at,
        )

    def claimed(self, claimed_at: datetime) -> QRTokenRecord:
        return replace(
            self,
            session_creation_token=None,
            session_creation_token_expires_at=None,
            claimed_at=claimed_at,
        )


@dataclass(frozen=True, slots=True)
class QRPayload:
    """Content of the scannable image: ``{"tokenId", "token", "serverUrl"}``."""

    token_id: str
    token: str
    server_url: str

    def to_dict(self) -> dict[str, str]:
        return {"tokenId": self.token_id, "token": self.token, "serverUrl": self.server_url}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))
