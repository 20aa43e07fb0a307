from __future__ import annotations

from pathlib import Path

import pytest

from notes_backend.integrations.storage.local_storage import LocalObjectStorage
from notes_backend.integrations.storage.object_storage import build_attachment_blob_key


def test_blob_key_layout():
    assert build_attachment_blob_key(user_id=3, attachment_id="abc", file_ext="png") == "3/abc.png"
    assert build_attachment_blob_key(user_id=3, attachment_id="abc") == "3/abc"


@pytest.mark.anyio
async def test_local_storage_round_trip(tmp_path: Path):
    s = LocalObjectStorage(root_dir=str(tmp_path))
    key = build_attachment_blob_key(user_id=1, attachment_id="a1", file_ext="pdf")

    assert await s.exists(key) is False
    await s.put_bytes(key, b"hello", content_type="application/pdf")

    path = tmp_path / "1" / "a1.pdf"
    assert path.read_bytes() == b"hello"
    assert not path.with_name("a1.pdf.tmp").exists()
    assert await s.exists(key) is True
    assert await s.get_bytes(key) == b"hello"

    await s.delete(key)
    assert await s.exists(key) is False
    # Deleting a missing blob is not an error.
    await s.delete(key)


@pytest.mark.parametrize("key", ["", "/", "../escape", "1/../../escape"])
def test_local_storage_rejects_unsafe_keys(tmp_path: Path, key: str):
    s = LocalObjectStorage(root_dir=str(tmp_path))
    with pytest.raises(ValueError):
        s.resolve_path(key)
