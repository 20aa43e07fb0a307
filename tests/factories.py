from __future__ import annotations

import uuid

from notes_backend.db import session_scope
from notes_backend.models import Attachment, Note, QuotaLedger
from notes_backend.repositories import quota_repo
from notes_backend.services import users_service
from notes_backend.services.attachment_policy import AttachmentPolicy
from notes_backend.services.attachments_service import AttachmentLifecycle
from notes_backend.services.quota_service import QuotaLedgerService


def make_policy(*, max_user_storage_bytes: int = 10_000, max_file_bytes: int = 5_000) -> AttachmentPolicy:
    return AttachmentPolicy(
        image_types=("jpg", "jpeg", "png", "gif", "webp"),
        document_types=("pdf", "doc", "docx", "xls", "xlsx"),
        max_image_bytes=max_file_bytes,
        max_document_bytes=max_file_bytes,
        max_user_storage_bytes=max_user_storage_bytes,
    )


def make_lifecycle(
    storage: object,
    *,
    max_user_storage_bytes: int = 10_000,
    max_file_bytes: int = 5_000,
    ledger: QuotaLedgerService | None = None,
) -> AttachmentLifecycle:
    policy = make_policy(
        max_user_storage_bytes=max_user_storage_bytes, max_file_bytes=max_file_bytes
    )
    return AttachmentLifecycle(
        storage=storage,  # pyright: ignore[reportArgumentType]
        ledger=ledger or QuotaLedgerService(max_user_storage_bytes=max_user_storage_bytes),
        policy=policy,
    )


async def create_user(username: str, *, api_token: str | None = None, is_admin: bool = False) -> int:
    async with session_scope() as session:
        user = await users_service.create_user(
            session, username=username, api_token=api_token, is_admin=is_admin
        )
        assert user.id is not None
        return int(user.id)


async def create_note(user_id: int, *, note_id: str | None = None) -> str:
    note_id = note_id or str(uuid.uuid4())
    async with session_scope() as session:
        session.add(Note(id=note_id, user_id=user_id, title="n"))
        await session.commit()
    return note_id


async def create_user_with_note(username: str, **kwargs: object) -> tuple[int, str]:
    user_id = await create_user(username, **kwargs)  # type: ignore[arg-type]
    note_id = await create_note(user_id)
    return user_id, note_id


async def read_ledger(user_id: int) -> QuotaLedger:
    async with session_scope() as session:
        ledger = await quota_repo.get_ledger(session, user_id=user_id)
        assert ledger is not None
        return ledger


async def read_attachment(attachment_id: str) -> Attachment | None:
    async with session_scope() as session:
        return await session.get(Attachment, attachment_id)


async def live_bytes(user_id: int) -> int:
    from notes_backend.repositories import attachments_repo

    async with session_scope() as session:
        used, _images, _documents = await attachments_repo.sum_usage_for_user(
            session, user_id=user_id
        )
        return used
