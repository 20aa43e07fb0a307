"""users, notes, attachments, quota_ledger

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("users"):
        _ = op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("username", sa.String(length=64), nullable=False),
            sa.Column("api_token", sa.Text(), nullable=True, unique=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_users_username", "users", ["username"], unique=True)
        op.create_index("ix_users_is_active", "users", ["is_active"], unique=False)
        op.create_index("ix_users_is_admin", "users", ["is_admin"], unique=False)
        op.create_index("ix_users_created_at", "users", ["created_at"], unique=False)

    if not _table_exists("notes"):
        _ = op.create_table(
            "notes",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("title", sa.String(length=500), nullable=False, server_default=sa.text("''")),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_notes_user_id", "notes", ["user_id"], unique=False)
        op.create_index("ix_notes_created_at", "notes", ["created_at"], unique=False)
        op.create_index("ix_notes_updated_at", "notes", ["updated_at"], unique=False)
        op.create_index("ix_notes_deleted_at", "notes", ["deleted_at"], unique=False)

    if not _table_exists("attachments"):
        _ = op.create_table(
            "attachments",
            sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
            sa.Column("note_id", sa.String(length=36), sa.ForeignKey("notes.id"), nullable=False),
            sa.Column("blob_key", sa.String(length=512), nullable=True, unique=True),
            sa.Column(
                "original_filename",
                sa.String(length=255),
                nullable=False,
                server_default=sa.text("''"),
            ),
            sa.Column("size_bytes", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
            sa.Column("type_category", sa.String(length=20), nullable=False),
            sa.Column("file_ext", sa.String(length=20), nullable=False, server_default=sa.text("''")),
            sa.Column("mime_type", sa.String(length=255), nullable=True),
            sa.Column(
                "state", sa.String(length=20), nullable=False, server_default=sa.text("'active'")
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("size_bytes >= 0", name="ck_attachments_size_bytes_non_negative"),
        )
        op.create_index("ix_attachments_note_id", "attachments", ["note_id"], unique=False)
        op.create_index(
            "ix_attachments_type_category", "attachments", ["type_category"], unique=False
        )
        op.create_index("ix_attachments_state", "attachments", ["state"], unique=False)
        op.create_index("ix_attachments_created_at", "attachments", ["created_at"], unique=False)
        op.create_index("ix_attachments_deleted_at", "attachments", ["deleted_at"], unique=False)

    if not _table_exists("quota_ledger"):
        _ = op.create_table(
            "quota_ledger",
            sa.Column(
                "user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True, nullable=False
            ),
            sa.Column("used_bytes", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
            sa.Column("file_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("image_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("document_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("used_bytes >= 0", name="ck_quota_ledger_used_bytes_non_negative"),
        )


def downgrade() -> None:
    op.drop_table("quota_ledger")
    op.drop_table("attachments")
    op.drop_table("notes")
    op.drop_table("users")
