"""QR token repository: database operations for the token exchange.

The two mutating steps of the protocol are single conditional UPDATEs, so
concurrent requests on the same row serialize in the database and exactly
one of them sees ``rowcount == 1``.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import and_, delete as sa_delete, or_, update as sa_update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from qrlogin.models.qr_token import QRTokenRow


async def create_qr_token(
    session: AsyncSession,
    *,
    token_id: str,
    secret_hash: str,
    created_at: datetime,
    expires_at: datetime,
) -> QRTokenRow:
    """Insert a new pending QR token."""
    row = QRTokenRow(
        id=token_id,
        secret_hash=secret_hash,
        created_at=created_at,
        expires_at=expires_at,
        used=False,
    )
    session.add(row)
    await session.flush()
    return row


async def get_qr_token(session: AsyncSession, token_id: str) -> QRTokenRow | None:
    """Look up a QR token by its public id."""
    statement = select(QRTokenRow).where(QRTokenRow.id == token_id)
    result = await session.exec(statement)
    return result.first()


async def get_qr_token_by_session_token(
    session: AsyncSession,
    session_creation_token: str,
) -> QRTokenRow | None:
    """Look up a QR token by its (uncleared) session-creation token."""
    statement = select(QRTokenRow).where(
        QRTokenRow.session_creation_token == session_creation_token,
    )
    result = await session.exec(statement)
    return result.first()


async def mark_verified(
    session: AsyncSession,
    token_id: str,
    *,
    user_id: str,
    verified_at: datetime,
    session_creation_token: str,
    session_creation_token_expires_at: datetime,
    user: dict[str, Any] | None = None,
) -> bool:
    """Flip a pending, unexpired token to verified. Returns False if another request got there first."""
    stmt = (
        sa_update(QRTokenRow)
        .where(
            QRTokenRow.id == token_id,
            QRTokenRow.used == False,  # noqa: E712
            QRTokenRow.expires_at >= verified_at,
        )
        .values(
            used=True,
            user_id=user_id,
            user=user,
            verified_at=verified_at,
            session_creation_token=session_creation_token,
            session_creation_token_expires_at=session_creation_token_expires_at,
        )
    )
    result = await session.execute(stmt)
    await session.flush()
    return result.rowcount == 1


async def consume_session_token(
    session: AsyncSession,
    session_creation_token: str,
    *,
    now: datetime,
) -> bool:
    """Clear a live session-creation token and stamp claimed_at. Returns False if it was already gone."""
    stmt = (
        sa_update(QRTokenRow)
        .where(
            QRTokenRow.session_creation_token == session_creation_token,
            QRTokenRow.used == True,  # noqa: E712
            QRTokenRow.session_creation_token_expires_at >= now,
        )
        .values(
            session_creation_token=None,
            session_creation_token_expires_at=None,
            claimed_at=now,
        )
    )
    result = await session.execute(stmt)
    await session.flush()
    return result.rowcount == 1


async def delete_qr_token(session: AsyncSession, token_id: str) -> bool:
    """Delete a QR token. Deleting a missing row is a no-op."""
    stmt = sa_delete(QRTokenRow).where(QRTokenRow.id == token_id)
    result = await session.execute(stmt)
    await session.flush()
    return result.rowcount > 0


async def delete_dead_qr_tokens(session: AsyncSession, now: datetime) -> int:
    """Delete expired and claimed tokens. Returns count deleted."""
    stmt = sa_delete(QRTokenRow).where(
        or_(
            QRTokenRow.claimed_at.is_not(None),
            and_(QRTokenRow.used == False, QRTokenRow.expires_at < now),  # noqa: E712
            and_(
                QRTokenRow.used == True,  # noqa: E712
                or_(
                    QRTokenRow.session_creation_token_expires_at.is_(None),
                    QRTokenRow.session_creation_token_expires_at < now,
                ),
            ),
        ),
    )
    result = await session.execute(stmt)
    await session.flush()
    return result.rowcount
