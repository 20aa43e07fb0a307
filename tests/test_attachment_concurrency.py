from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from sqlmodel import select

from notes_backend.db import session_scope
from notes_backend.errors import QuotaExceededError
from notes_backend.models import ATTACHMENT_STATE_ACTIVE, Attachment

from factories import create_user_with_note, live_bytes, make_lifecycle, read_ledger
from storage_fakes import MemoryObjectStorage


@pytest.mark.anyio
async def test_concurrent_uploads_never_exceed_quota(sqlite_db: Path) -> None:
    _ = sqlite_db
    storage = MemoryObjectStorage()
    lifecycle = make_lifecycle(storage, max_user_storage_bytes=999, max_file_bytes=1_000)
    user_id, note_id = await create_user_with_note("u_concurrent")

    async def _one(i: int) -> Attachment:
        async with session_scope() as session:
            return await lifecycle.upload(
                session,
                user_id=user_id,
                note_id=note_id,
                filename=f"f{i}.pdf",
                mime_type="application/pdf",
                data=b"x" * 250,
            )

    results = await asyncio.gather(*(_one(i) for i in range(4)), return_exceptions=True)

    ok = [r for r in results if isinstance(r, Attachment)]
    rejected = [r for r in results if isinstance(r, QuotaExceededError)]
    assert len(ok) == 3
    assert len(rejected) == 1

    ledger = await read_ledger(user_id)
    assert (ledger.used_bytes, ledger.file_count, ledger.document_count) == (750, 3, 3)
    assert ledger.used_bytes == await live_bytes(user_id)

    async with session_scope() as session:
        rows = (
            await session.exec(select(Attachment).where(Attachment.state == ATTACHMENT_STATE_ACTIVE))
        ).all()
    assert len(rows) == 3
    # Blobs of rejected uploads are not left behind.
    assert set(storage.objects) == {r.blob_key for r in rows}


@pytest.mark.anyio
async def test_concurrent_restore_and_upload_respect_quota(sqlite_db: Path) -> None:
    _ = sqlite_db
    lifecycle = make_lifecycle(MemoryObjectStorage(), max_user_storage_bytes=500)
    user_id, note_id = await create_user_with_note("u_restore_race")

    async with session_scope() as session:
        first = await lifecycle.upload(
            session, user_id=user_id, note_id=note_id, filename="a.pdf", mime_type=None, data=b"x" * 300
        )
    async with session_scope() as session:
        await lifecycle.soft_delete(session, user_id=user_id, attachment_id=first.id)

    async def _restore() -> None:
        async with session_scope() as session:
            await lifecycle.restore(session, user_id=user_id, attachment_id=first.id)

    async def _upload() -> Attachment:
        async with session_scope() as session:
            return await lifecycle.upload(
                session, user_id=user_id, note_id=note_id, filename="b.pdf", mime_type=None, data=b"y" * 300
            )

    results = await asyncio.gather(_restore(), _upload(), return_exceptions=True)

    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(failures) == 1
    assert isinstance(failures[0], QuotaExceededError)
    ledger = await read_ledger(user_id)
    assert ledger.used_bytes == 300
    assert ledger.used_bytes == await live_bytes(user_id)
