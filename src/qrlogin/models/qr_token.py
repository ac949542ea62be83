from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from qrlogin.models.base import Base
from qrlogin.utils import TZDateTime, utc_now


class QRTokenRow(Base):
    __tablename__ = "qrlogin_tokens"
    __table_args__ = (
        Index("ix_qrlogin_tokens_expires_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    secret_hash: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False, default=utc_now)
    expires_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, default=False)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)
    user: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True, default=None)
    verified_at: Mapped[datetime | None] = mapped_column(TZDateTime(), nullable=True, default=None)
    session_creation_token: Mapped[str | None] = mapped_column(
        String(64), unique=True, nullable=True, default=None,
    )
    session_creation_token_expires_at: Mapped[datetime | None] = mapped_column(
        TZDateTime(), nullable=True, default=None,
    )
    claimed_at: Mapped[datetime | None] = mapped_column(TZDateTime(), nullable=True, default=None)
