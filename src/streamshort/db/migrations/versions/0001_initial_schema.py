"""Initial schema: credentials, creators, content, events

Learn: The tables fall into three groups:
- credentials: users, otp_transactions, refresh_tokens
- ownership chain: creator_profiles → series → episodes
  (plus creator_analytics feeding the dashboard)
- audit: events (append-only)

uq_episodes_series_number backs the service-level episode number
check, so two concurrent creates with the same number can't both
commit.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # ─── Credentials ─────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("phone", sa.String(20), nullable=True, unique=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    op.create_table(
        "otp_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("txn_id", sa.String(32), nullable=False, unique=True),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("code", sa.String(10), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_otp_phone_code", "otp_transactions", ["phone", "code"])

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("token", sa.String(128), nullable=False, unique=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    # ─── Ownership chain ─────────────────────────────────
    op.create_table(
        "creator_profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("bio", sa.Text(), nullable=False, server_default=""),
        sa.Column("kyc_document_s3_path", sa.Text(), nullable=False),
        sa.Column("kyc_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("rating", sa.Float(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "kyc_status IN ('pending', 'verified', 'rejected')",
            name="ck_creator_profiles_kyc_status",
        ),
    )

    op.create_table(
        "creator_analytics",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "creator_id", sa.Uuid(), sa.ForeignKey("creator_profiles.id"), nullable=False
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("watch_time_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("earnings", sa.Numeric(10, 2), nullable=False, server_default="0"),
    )
    op.create_index(
        "idx_creator_analytics_creator_date", "creator_analytics", ["creator_id", "date"]
    )

    op.create_table(
        "series",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "creator_id", sa.Uuid(), sa.ForeignKey("creator_profiles.id"), nullable=False
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("synopsis", sa.Text(), nullable=False),
        sa.Column("language", sa.String(20), nullable=False),
        sa.Column("category_tags", sa.JSON(), nullable=False),
        sa.Column("price_type", sa.String(20), nullable=False, server_default="free"),
        sa.Column("price_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        *_timestamps(),
        sa.CheckConstraint("status IN ('draft', 'published')", name="ck_series_status"),
    )
    op.create_index("idx_series_creator", "series", ["creator_id"])

    op.create_table(
        "episodes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("series_id", sa.Uuid(), sa.ForeignKey("series.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("episode_number", sa.Integer(), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("thumb_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending_upload"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "series_id", "episode_number", name="uq_episodes_series_number"
        ),
        sa.CheckConstraint(
            "status IN ('pending_upload', 'queued_transcode', 'ready', 'published')",
            name="ck_episodes_status",
        ),
    )

    # ─── Audit ───────────────────────────────────────────
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stream_id", sa.String(200), nullable=False),
        sa.Column("type", sa.String(100), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_events_stream", "events", ["stream_id", "id"])
    op.create_index("idx_events_type", "events", ["type"])


def downgrade() -> None:
    op.drop_table("events")
    op.drop_table("episodes")
    op.drop_table("series")
    op.drop_table("creator_analytics")
    op.drop_table("creator_profiles")
    op.drop_table("refresh_tokens")
    op.drop_table("otp_transactions")
    op.drop_table("users")
