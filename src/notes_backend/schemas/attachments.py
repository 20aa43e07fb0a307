from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from notes_backend.models import Attachment as AttachmentRow
from notes_backend.models import QuotaLedger


class Attachment(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    note_id: str = Field(min_length=1, max_length=36)

    original_filename: str = Field(max_length=255)
    mime_type: str | None = Field(default=None, max_length=255)
    type_category: str
    file_ext: str
    size_bytes: int = Field(ge=0)
    state: str

    created_at: datetime
    deleted_at: datetime | None = None

    @classmethod
    def from_row(cls, row: AttachmentRow) -> "Attachment":
        # blob_key is internal and never exposed.
        return cls(
            id=row.id,
            note_id=row.note_id,
            original_filename=row.original_filename,
            mime_type=row.mime_type,
            type_category=row.type_category,
            file_ext=row.file_ext,
            size_bytes=row.size_bytes,
            state=row.state,
            created_at=row.created_at,
            deleted_at=row.deleted_at,
        )


class AttachmentList(BaseModel):
    items: list[Attachment]


class DeletedAttachment(Attachment):
    owner_user_id: int


class DeletedAttachmentList(BaseModel):
    items: list[DeletedAttachment]


class StorageQuota(BaseModel):
    user_id: int
    used_bytes: int = Field(ge=0)
    max_bytes: int = Field(ge=0)
    available_bytes: int = Field(ge=0)
    file_count: int = Field(ge=0)
    image_count: int = Field(ge=0)
    document_count: int = Field(ge=0)
    updated_at: datetime

    @classmethod
    def from_ledger(cls, ledger: QuotaLedger, *, max_bytes: int) -> "StorageQuota":
        return cls(
            user_id=ledger.user_id,
            used_bytes=ledger.used_bytes,
            max_bytes=max_bytes,
            available_bytes=max(0, max_bytes - ledger.used_bytes),
            file_count=ledger.file_count,
            image_count=ledger.image_count,
            document_count=ledger.document_count,
            updated_at=ledger.updated_at,
        )
