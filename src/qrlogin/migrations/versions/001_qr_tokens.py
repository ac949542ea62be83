"""QR token table.

Revision ID: 001
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "qrlogin_tokens",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("secret_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_creation_token", sa.String(64), nullable=True),
        sa.Column("session_creation_token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_qrlogin_tokens_expires_at", "qrlogin_tokens", ["expires_at"])
    op.create_index(
        "ix_qrlogin_tokens_session_creation_token",
        "qrlogin_tokens",
        ["session_creation_token"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("ix_qrlogin_tokens_session_creation_token", table_name="qrlogin_tokens")
    op.drop_index("ix_qrlogin_tokens_expires_at", table_name="qrlogin_tokens")
    op.drop_table("qrlogin_tokens")
