"""Waitlist users and referral edges.

Revision ID: 001_waitlist_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_waitlist_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create waitlist_users and referrals."""
    op.create_table(
        "waitlist_users",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("marketing_opt_in", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("additional_remarks", sa.Text(), nullable=True),
        sa.Column("referral_code", sa.String(8), nullable=False),
        sa.Column("session_token", sa.String(64), nullable=False),
        sa.Column("session_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_waitlist_users_email", "waitlist_users", ["email"], unique=True)
    op.create_index("ix_waitlist_users_referral_code", "waitlist_users", ["referral_code"], unique=True)
    op.create_index("ix_waitlist_users_session_token", "waitlist_users", ["session_token"], unique=True)

    op.create_table(
        "referrals",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "referrer_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("waitlist_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "referee_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("waitlist_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("referrer_id", "referee_id", name="uq_referrals_referrer_referee"),
    )
    op.create_index("ix_referrals_referrer_id", "referrals", ["referrer_id"])
    op.create_index("ix_referrals_referee_id", "referrals", ["referee_id"])


def downgrade() -> None:
    op.drop_table("referrals")
    op.drop_table("waitlist_users")
