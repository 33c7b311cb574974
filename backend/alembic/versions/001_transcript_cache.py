"""Transcript cache — durable tier for positive and negative fetch outcomes.

Revision ID: 001_transcript_cache
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_transcript_cache"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "transcript_cache",
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("has_content", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("cached_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("access_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_accessed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.String(16), nullable=False),
    )
    op.create_index("ix_transcript_cache_expires", "transcript_cache", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_transcript_cache_expires", table_name="transcript_cache")
    op.drop_table("transcript_cache")
