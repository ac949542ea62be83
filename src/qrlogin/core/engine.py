"""Token lifecycle engine: generate, verify, poll, claim, sweep.

Framework-agnostic business logic. The engine owns the state machine

    PENDING --verify--> VERIFIED --claim_session--> CLAIMED
       |                   |
       +-----expiry--------+------> EXPIRED

and talks to exactly two collaborators: a ``TokenStore`` (atomic per-record
writes) and a ``SessionIssuer`` (mints the requesting device's session).
Verification never hands out a session; it only mints a short-lived,
one-time ``session_creation_token`` that the requesting device reads by
polling and exchanges in ``claim_session``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from qrlogin.config import QRLoginConfig
from qrlogin.core.errors import QRAuthError
from qrlogin.core.records import QRPayload, QRTokenRecord, TokenState
from qrlogin.core.sessions import Identity, SessionIssuer, UserNotFoundError
from qrlogin.core.store import TokenStore
from qrlogin.core.tokens import (
    generate_secret,
    generate_session_creation_token,
    generate_token_id,
    secret_matches,
)
from qrlogin.events import (
    HookRegistry,
    SessionClaimed,
    TokenExpired,
    TokenGenerated,
    TokenVerified,
    VerifyFailed,
)
from qrlogin.utils import utc_now

logger = logging.getLogger("qrlogin.engine")

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class GeneratedToken:
    token_id: str
    secret: str
    expires_at: datetime
    payload: QRPayload


@dataclass(frozen=True, slots=True)
class VerifyResult:
    user_id: str
    user: dict[str, Any] | None
    session_creation_token: str
    session_creation_token_expires_at: datetime


@dataclass(frozen=True, slots=True)
class TokenStatus:
    """Outcome of a poll.

    ``reason`` is set for expired tokens: not_found, expired, handoff_expired
    or claimed.
    """

    token_id: str
    status: str
    reason: str | None = None
    expires_at: datetime | None = None
    user_id: str | None = None
    user: dict[str, Any] | None = None
    verified_at: datetime | None = None
    session_creation_token: str | None = None
    session_creation_token_expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ClaimResult:
    user_id: str
    user: dict[str, Any] | None
    session_token: str
    expires_at: datetime
    session_id: str | None = None


_INVALID_TOKEN_MESSAGE = "Invalid QR code"


class QRTokenEngine:
    """The QR token state machine.

    Args:
        store: Record store shared by every request.
        session_issuer: Mints sessions at claim time. Optional for callers
            that only generate/verify/poll/sweep (e.g. the CLI).
        config: Lifetimes and bounds.
        hooks: Event hook registry.
        clock: Returns the current aware UTC time. Injectable for tests.
    """

    def __init__(
        self,
        store: TokenStore,
        *,
        session_issuer: SessionIssuer | None = None,
        config: QRLoginConfig | None = None,
        hooks: HookRegistry | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._session_issuer = session_issuer
        self._config = config or QRLoginConfig()
        self._hooks = hooks or HookRegistry()
        self._clock = clock or utc_now

    @property
    def store(self) -> TokenStore:
        return self._store

    def now(self) -> datetime:
        return self._clock()

    # ------ generate ------

    async def generate(
        self,
        *,
        server_url: str,
        ttl_minutes: int | None = None,
    ) -> GeneratedToken:
        """Mint a new pending token and the QR payload that carries it.

        Raises:
            QRAuthError: ttl_minutes outside the configured bounds (code: invalid_ttl).
            QRStoreError: The store is unavailable.
        """
        cfg = self._config
        ttl = cfg.token_ttl_minutes if ttl_minutes is None else ttl_minutes
        if not cfg.min_token_ttl_minutes <= ttl <= cfg.max_token_ttl_minutes:
            raise QRAuthError(
                f"ttlMinutes must be between {cfg.min_token_ttl_minutes} and {cfg.max_token_ttl_minutes}",
                code="invalid_ttl",
                status_code=400,
            )

        now = self.now()
        token_id = generate_token_id()
        raw_secret, secret_hash = generate_secret()
        expires_at = now + timedelta(minutes=ttl)
        await self._store.create(QRTokenRecord(
            id=token_id,
            secret_hash=secret_hash,
            created_at=now,
            expires_at=expires_at,
        ))

        logger.info("QR token %s generated, expires %s", token_id, expires_at.isoformat())
        await self._hooks.emit("token_generated", TokenGenerated(
            token_id=token_id, expires_at=expires_at,
        ))

        return GeneratedToken(
            token_id=token_id,
            secret=raw_secret,
            expires_at=expires_at,
            payload=QRPayload(token_id=token_id, token=raw_secret, server_url=server_url),
        )

    # ------ verify ------

    async def verify(self, token_id: str, secret: str, identity: Identity) -> VerifyResult:
        """Bind the scanning device's identity to a pending token.

        Not-found and wrong-secret are indistinguishable to the caller
        (both ``invalid_token``); the log and the ``verify_failed`` event keep
        them apart.

        Raises:
            QRAuthError: missing_fields (400), invalid_token (401),
                token_expired (410), token_already_used (409).
        """
        if not token_id or not secret:
            raise QRAuthError("Token ID and token are required", code="missing_fields", status_code=400)

        now = self.now()
        record = await self._store.get(token_id)
        if record is None:
            logger.warning("Verify rejected for %s: token not found", token_id)
            await self._verify_failed(token_id, identity, "not_found")
            raise QRAuthError(_INVALID_TOKEN_MESSAGE, code="invalid_token", status_code=401)

        if now > record.expires_at:
            if record.is_dead(now):
                await self._evict(record)
            logger.info("Verify rejected for %s: token expired", token_id)
            await self._verify_failed(token_id, identity, "expired")
            raise QRAuthError("QR code expired", code="token_expired", status_code=410)

        if not secret_matches(secret, record.secret_hash):
            logger.warning("Verify rejected for %s: secret mismatch", token_id)
            await self._verify_failed(token_id, identity, "invalid_secret")
            raise QRAuthError(_INVALID_TOKEN_MESSAGE, code="invalid_token", status_code=401)

        if record.used:
            await self._verify_failed(token_id, identity, "already_used")
            raise QRAuthError("QR code already used", code="token_already_used", status_code=409)

        session_creation_token = generate_session_creation_token()
        handoff_expires_at = now + timedelta(seconds=self._config.session_creation_ttl_seconds)
        won = await self._store.mark_verified(
            token_id,
            user_id=identity.user_id,
            verified_at=now,
            session_creation_token=session_creation_token,
            session_creation_token_expires_at=handoff_expires_at,
            user=identity.user,
        )
        if not won:
            # Lost the compare-and-set: someone verified first, or the token
            # crossed its expiry between the read and the write.
            current = await self._store.get(token_id)
            if current is None or (not current.used and self.now() > current.expires_at):
                await self._verify_failed(token_id, identity, "expired")
                raise QRAuthError("QR code expired", code="token_expired", status_code=410)
            await self._verify_failed(token_id, identity, "already_used")
            raise QRAuthError("QR code already used", code="token_already_used", status_code=409)

        logger.info("QR token %s verified by user %s", token_id, identity.user_id)
        await self._hooks.emit("token_verified", TokenVerified(
            token_id=token_id, user_id=identity.user_id,
        ))

        return VerifyResult(
            user_id=identity.user_id,
            user=identity.user,
            session_creation_token=session_creation_token,
            session_creation_token_expires_at=handoff_expires_at,
        )

    # ------ poll ------

    async def poll_status(self, token_id: str) -> TokenStatus:
        """Report where a token is in its lifecycle.

        Read-only apart from evicting dead records. The session-creation token
        is disclosed only while the token is VERIFIED.

        Raises:
            QRAuthError: missing_token_id (400).
        """
        if not token_id:
            raise QRAuthError("Token ID required", code="missing_token_id", status_code=400)

        now = self.now()
        record = await self._store.get(token_id)
        if record is None:
            return TokenStatus(token_id=token_id, status=STATUS_EXPIRED, reason="not_found")

        state = record.state(now)
        if state is TokenState.PENDING:
            return TokenStatus(
                token_id=token_id,
                status=STATUS_PENDING,
                expires_at=record.expires_at,
            )

        if state is TokenState.VERIFIED:
            return TokenStatus(
                token_id=token_id,
                status=STATUS_COMPLETED,
                expires_at=record.expires_at,
                user_id=record.user_id,
                user=record.user,
                verified_at=record.verified_at,
                session_creation_token=record.session_creation_token,
                session_creation_token_expires_at=record.session_creation_token_expires_at,
            )

        if state is TokenState.CLAIMED:
            return TokenStatus(
                token_id=token_id,
                status=STATUS_EXPIRED,
                reason="claimed",
                user_id=record.user_id,
                verified_at=record.verified_at,
            )

        await self._evict(record)
        return TokenStatus(
            token_id=token_id,
            status=STATUS_EXPIRED,
            reason="handoff_expired" if record.used else "expired",
            expires_at=record.expires_at,
        )

    # ------ claim ------

    async def claim_session(self, session_creation_token: str) -> ClaimResult:
        """Exchange a handoff token for a new, independent session.

        The handoff token is consumed before the session is minted, so two
        racing claims can never both succeed. If the session system then
        fails, the handoff is spent and the flow must restart.

        Raises:
            QRAuthError: missing_session_token (400), invalid_session_token (404),
                not_verified (400), session_token_expired (410),
                user_not_found (404), session_creation_failed (500).
        """
        if not session_creation_token:
            raise QRAuthError(
                "Session creation token is required",
                code="missing_session_token",
                status_code=400,
            )
        if self._session_issuer is None:
            raise RuntimeError("claim_session requires a session issuer")

        now = self.now()
        record = await self._store.get_by_session_token(session_creation_token)
        if record is None:
            raise QRAuthError(
                "Invalid session creation token",
                code="invalid_session_token",
                status_code=404,
            )

        if not record.used or record.user_id is None:
            raise QRAuthError("QR token not properly verified", code="not_verified", status_code=400)

        expires_at = record.session_creation_token_expires_at
        if expires_at is None or now > expires_at:
            await self._evict(record)
            raise QRAuthError(
                "Session creation token expired",
                code="session_token_expired",
                status_code=410,
            )

        claimed = await self._store.consume_session_token(session_creation_token, now=now)
        if claimed is None:
            logger.info("Claim for QR token %s lost a race or arrived late", record.id)
            raise QRAuthError(
                "Invalid session creation token",
                code="invalid_session_token",
                status_code=404,
            )

        user_id = claimed.user_id
        try:
            issued = await self._session_issuer.create_session(user_id)
        except UserNotFoundError as exc:
            logger.info("QR token %s claimed for missing user %s", claimed.id, user_id)
            raise QRAuthError("User not found", code="user_not_found", status_code=404) from exc
        except Exception as exc:
            logger.exception("Session creation failed for QR token %s", claimed.id)
            raise QRAuthError(
                f"Failed to create session: {exc}",
                code="session_creation_failed",
                status_code=500,
            ) from exc

        logger.info("QR token %s claimed, new session for user %s", claimed.id, user_id)
        await self._hooks.emit("session_claimed", SessionClaimed(
            token_id=claimed.id, user_id=user_id, session_id=issued.session_id,
        ))

        return ClaimResult(
            user_id=user_id,
            user=issued.user,
            session_token=issued.token,
            expires_at=issued.expires_at,
            session_id=issued.session_id,
        )

    # ------ sweep ------

    async def sweep_expired(self) -> int:
        """Delete every expired or claimed record. Idempotent. Returns count deleted."""
        deleted = await self._store.delete_expired(self.now())
        if deleted:
            logger.info("Swept %d dead QR tokens", deleted)
        return deleted

    # ------ helpers ------

    async def _evict(self, record: QRTokenRecord) -> None:
        if await self._store.delete(record.id):
            stage = "verified" if record.used else "pending"
            logger.info("QR token %s expired (%s), evicted", record.id, stage)
            await self._hooks.emit("token_expired", TokenExpired(token_id=record.id, stage=stage))

    async def _verify_failed(self, token_id: str, identity: Identity, reason: str) -> None:
        await self._hooks.emit("verify_failed", VerifyFailed(
            token_id=token_id, user_id=identity.user_id, reason=reason,
        ))
