"""Record stores for QR tokens: the only shared mutable state of the exchange.

The engine depends on the ``TokenStore`` protocol, never on a concrete
backend. Every mutating method is a compare-and-set on a single record:
``mark_verified`` on ``used``, ``consume_session_token`` on the token value.
"""

from __future__ import annotations

import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from qrlogin.core.errors import QRStoreError
from qrlogin.core.records import QRTokenRecord
from qrlogin.db import get_session
from qrlogin.models.qr_token import QRTokenRow
from qrlogin.repositories import qr_token as qr_token_repo


@runtime_checkable
class TokenStore(Protocol):
    """Keyed store of QR token records with atomic per-record updates."""

    async def create(self, record: QRTokenRecord) -> None:
        ...

    async def get(self, token_id: str) -> QRTokenRecord | None:
        ...

    async def get_by_session_token(self, session_creation_token: str) -> QRTokenRecord | None:
        ...

    async def mark_verified(
        self,
        token_id: str,
        *,
        user_id: str,
        verified_at: datetime,
        session_creation_token: str,
        session_creation_token_expires_at: datetime,
        user: dict[str, Any] | None = None,
    ) -> bool:
        """Set the verification fields iff the record is unused and ``expires_at >= verified_at``."""
        ...

    async def consume_session_token(
        self, session_creation_token: str, *, now: datetime,
    ) -> QRTokenRecord | None:
        """Clear a live handoff token and return the claimed record, or None if it was not claimable."""
        ...

    async def delete(self, token_id: str) -> bool:
        ...

    async def delete_expired(self, now: datetime) -> int:
        """Delete every expired or claimed record. Returns count deleted."""
        ...


class InMemoryTokenStore:
    """Thread-safe dict-backed store. For tests and single-process development."""

    def __init__(self) -> None:
        self._records: dict[str, QRTokenRecord] = {}
        self._by_session_token: dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    async def create(self, record: QRTokenRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise QRStoreError(f"Duplicate token id {record.id!r}")
            self._records[record.id] = record

    async def get(self, token_id: str) -> QRTokenRecord | None:
        with self._lock:
            return self._records.get(token_id)

    async def get_by_session_token(self, session_creation_token: str) -> QRTokenRecord | None:
        with self._lock:
            token_id = self._by_session_token.get(session_creation_token)
            return self._records.get(token_id) if token_id is not None else None

    async def mark_verified(
        self,
        token_id: str,
        *,
        user_id: str,
        verified_at: datetime,
        session_creation_token: str,
        session_creation_token_expires_at: datetime,
        user: dict[str, Any] | None = None,
    ) -> bool:
        with self._lock:
            record = self._records.get(token_id)
            if record is None or record.used or verified_at > record.expires_at:
                return False
            self._records[token_id] = record.verified(
                user_id=user_id,
                verified_at=verified_at,
                session_creation_token=session_creation_token,
                session_creation_token_expires_at=session_creation_token_expires_at,
                user=user,
            )
            self._by_session_token[session_creation_token] = token_id
            return True

    async def consume_session_token(
        self, session_creation_token: str, *, now: datetime,
    ) -> QRTokenRecord | None:
        with self._lock:
            token_id = self._by_session_token.get(session_creation_token)
            record = self._records.get(token_id) if token_id is not None else None
            if (
                record is None
                or not record.used
                or record.session_creation_token != session_creation_token
                or record.session_creation_token_expires_at is None
                or now > record.session_creation_token_expires_at
            ):
                return None
            claimed = record.claimed(now)
            self._records[record.id] = claimed
            del self._by_session_token[session_creation_token]
            return claimed

    async def delete(self, token_id: str) -> bool:
        with self._lock:
            return self._pop(token_id)

    async def delete_expired(self, now: datetime) -> int:
        with self._lock:
            dead = [tid for tid, record in self._records.items() if record.is_dead(now)]
            for token_id in dead:
                self._pop(token_id)
            return len(dead)

    def _pop(self, token_id: str) -> bool:
        record = self._records.pop(token_id, None)
        if record is None:
            return False
        if record.session_creation_token is not None:
            self._by_session_token.pop(record.session_creation_token, None)
        return True


class SQLTokenStore:
    """SQLAlchemy-backed store. Each call runs in its own short transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        try:
            async with get_session(self._session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            raise QRStoreError() from exc

    async def create(self, record: QRTokenRecord) -> None:
        async with self._session() as session:
            await qr_token_repo.create_qr_token(
                session,
                token_id=record.id,
                secret_hash=record.secret_hash,
                created_at=record.created_at,
                expires_at=record.expires_at,
            )

    async def get(self, token_id: str) -> QRTokenRecord | None:
        async with self._session() as session:
            row = await qr_token_repo.get_qr_token(session, token_id)
            return _to_record(row) if row is not None else None

    async def get_by_session_token(self, session_creation_token: str) -> QRTokenRecord | None:
        async with self._session() as session:
            row = await qr_token_repo.get_qr_token_by_session_token(session, session_creation_token)
            return _to_record(row) if row is not None else None

    async def mark_verified(
        self,
        token_id: str,
        *,
        user_id: str,
        verified_at: datetime,
        session_creation_token: str,
        session_creation_token_expires_at: datetime,
        user: dict[str, Any] | None = None,
    ) -> bool:
        async with self._session() as session:
            return await qr_token_repo.mark_verified(
                session,
                token_id,
                user_id=user_id,
                verified_at=verified_at,
                session_creation_token=session_creation_token,
                session_creation_token_expires_at=session_creation_token_expires_at,
                user=user,
            )

    async def consume_session_token(
        self, session_creation_token: str, *, now: datetime,
    ) -> QRTokenRecord | None:
        async with self._session() as session:
            row = await qr_token_repo.get_qr_token_by_session_token(session, session_creation_token)
            if row is None:
                return None
            record = _to_record(row)
            consumed = await qr_token_repo.consume_session_token(
                session, session_creation_token, now=now,
            )
            return record.claimed(now) if consumed else None

    async def delete(self, token_id: str) -> bool:
        async with self._session() as session:
            return await qr_token_repo.delete_qr_token(session, token_id)

    async def delete_expired(self, now: datetime) -> int:
        async with self._session() as session:
            return await qr_token_repo.delete_dead_qr_tokens(session, now)


def _to_record(row: QRTokenRow) -> QRTokenRecord:
    return QRTokenRecord(
        id=row.id,
        secret_hash=row.secret_hash,
        created_at=row.created_at,
        expires_at=row.expires_at,
        used=bool(row.used),
        user_id=row.user_id,
        user=row.user,
        verified_at=row.verified_at,
        session_creation_token=row.session_creation_token,
        session_creation_token_expires_at=row.session_creation_token_expires_at,
        claimed_at=row.claimed_at,
    )
