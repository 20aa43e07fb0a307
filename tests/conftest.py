from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from notes_backend.config import settings
from notes_backend.db import dispose_engine, init_db, reset_engine_cache
from notes_backend.deps import get_attachment_lifecycle


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
async def _dispose_engine_per_test(  # pyright: ignore[reportUnusedFunction]
    anyio_backend: object,  # noqa: ARG001
) -> AsyncGenerator[None, None]:
    # Dispose the cached AsyncEngine (aiosqlite worker threads) while the
    # per-test event loop is still alive.
    _ = anyio_backend
    yield
    await dispose_engine()
    get_attachment_lifecycle.cache_clear()


@pytest.fixture
async def sqlite_db(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, anyio_backend: object
) -> AsyncGenerator[Path, None]:
    _ = anyio_backend
    db_path = tmp_path / "test.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{db_path}")
    reset_engine_cache()
    await init_db()
    yield db_path
