"""Create lms_access_tokens table."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_lms_access_tokens"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Apply token store schema."""
    op.create_table(
        "lms_access_tokens",
        sa.Column("lms_setup_id", sa.String(length=64), nullable=False),
        sa.Column("ciphertext", sa.Text(), nullable=False),
        sa.Column("token_type", sa.String(length=32), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("stored_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("lms_setup_id"),
    )


def downgrade() -> None:
    """Revert token store schema."""
    op.drop_table("lms_access_tokens")
