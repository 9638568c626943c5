"""Upload requests

Learn: One row per presigned upload handed to a creator. The
completion notice from the client flips status to "completed"; the
row is looked up by id AND user_id, so one creator can't complete
another's upload.

Revision ID: 0002_upload_requests
Revises: 0001_initial_schema
Create Date: 2026-10-18 15:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_upload_requests'
down_revision: Union[str, None] = '0001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "upload_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending"),
        sa.Column("s3_path", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'uploading', 'completed', 'failed')",
            name="ck_upload_requests_status",
        ),
    )
    op.create_index("idx_upload_requests_user", "upload_requests", ["user_id"])


def downgrade() -> None:
    op.drop_index("idx_upload_requests_user", table_name="upload_requests")
    op.drop_table("upload_requests")
