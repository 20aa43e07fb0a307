# basedpyright: reportAssignmentType=false
# basedpyright: reportIncompatibleVariableOverride=false

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Column, Text
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Attachment lifecycle. Purged attachments have no row.
ATTACHMENT_STATE_ACTIVE = "active"
ATTACHMENT_STATE_SOFT_DELETED = "soft_deleted"

TYPE_CATEGORY_IMAGE = "image"
TYPE_CATEGORY_DOCUMENT = "document"


class User(SQLModel, table=True):
    __tablename__ = "users"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, min_length=1, max_length=64)
    # Opaque bearer token issued by the auth collaborator.
    api_token: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True, unique=True))

    is_active: bool = Field(default=True, index=True)
    is_admin: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)


class Note(SQLModel, table=True):
    __tablename__ = "notes"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: str = Field(primary_key=True, min_length=1, max_length=36)
    user_id: int = Field(index=True, foreign_key="users.id")
    title: str = Field(default="", max_length=500)

    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now, index=True)
    deleted_at: Optional[datetime] = Field(default=None, index=True)


class Attachment(SQLModel, table=True):
    __tablename__ = "attachments"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: str = Field(primary_key=True, min_length=1, max_length=36)
    # Ownership is fixed at creation.
    note_id: str = Field(index=True, foreign_key="notes.id", min_length=1, max_length=36)

    # Metadata only. Binary content lives in the object storage under blob_key.
    blob_key: Optional[str] = Field(default=None, max_length=512, unique=True)
    original_filename: str = Field(default="", max_length=255)
    size_bytes: int = Field(default=0, ge=0, sa_column=Column(BigInteger, nullable=False))
    type_category: str = Field(max_length=20, index=True)
    file_ext: str = Field(default="", max_length=20)
    mime_type: Optional[str] = Field(default=None, max_length=255)

    state: str = Field(default=ATTACHMENT_STATE_ACTIVE, max_length=20, index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = Field(default=None, index=True)


class QuotaLedger(SQLModel, table=True):
    __tablename__ = "quota_ledger"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    user_id: int = Field(primary_key=True, foreign_key="users.id")

    used_bytes: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    file_count: int = Field(default=0)
    image_count: int = Field(default=0)
    document_count: int = Field(default=0)

    updated_at: datetime = Field(default_factory=utc_now)
