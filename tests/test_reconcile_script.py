from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest

from notes_backend.db import session_scope
from notes_backend.repositories import quota_repo
from notes_backend.services.quota_service import QuotaLedgerService

from factories import create_user_with_note, read_ledger

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "reconcile_storage.py"


def _load_script() -> ModuleType:
    spec = importlib.util.spec_from_file_location("reconcile_storage", SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


async def _corrupt(user_id: int, used_bytes: int) -> None:
    async with session_scope() as session:
        await QuotaLedgerService(max_user_storage_bytes=0).replace(
            session,
            user_id=user_id,
            used_bytes=used_bytes,
            file_count=1,
            image_count=1,
            document_count=0,
        )
        await session.commit()


@pytest.mark.anyio
async def test_reconcile_script_resets_drifted_ledgers(sqlite_db: Path):
    _ = sqlite_db
    user_a, _ = await create_user_with_note("u_script_a")
    user_b, _ = await create_user_with_note("u_script_b")
    await _corrupt(user_a, 123)
    await _corrupt(user_b, 456)

    script = _load_script()
    results = await script.run(user_ids=[user_a])
    assert results == [
        {"user_id": user_a, "used_bytes": 0, "file_count": 0, "image_count": 0, "document_count": 0}
    ]
    assert (await read_ledger(user_b)).used_bytes == 456

    results = await script.run(user_ids=None)
    assert sorted(r["user_id"] for r in results) == sorted([user_a, user_b])
    assert all(r["used_bytes"] == 0 for r in results)
    assert (await read_ledger(user_b)).used_bytes == 0


@pytest.mark.anyio
async def test_reconcile_script_skips_unknown_users(sqlite_db: Path):
    _ = sqlite_db
    user_id, _ = await create_user_with_note("u_script_known")
    missing_id = user_id + 1000

    script = _load_script()
    results = await script.run(user_ids=[missing_id, user_id])

    assert results[0] == {"user_id": missing_id, "error": "user_not_found"}
    assert results[1]["user_id"] == user_id
    async with session_scope() as session:
        assert await quota_repo.get_ledger(session, user_id=missing_id) is None
