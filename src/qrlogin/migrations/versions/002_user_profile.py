"""Add user column to QR tokens for the verifying user's public profile.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "qrlogin_tokens",
        sa.Column("user", sa.JSON(), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("qrlogin_tokens", "user")
