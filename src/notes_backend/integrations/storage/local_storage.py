"""Attachment blobs on the local filesystem, one file per blob key."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from starlette.concurrency import run_in_threadpool


def _key_to_path(root: Path, key: str) -> Path:
    segments = [s for s in PurePosixPath(key).parts if s not in {"/", ""}]
    if not segments or any(s in {"..", "."} for s in segments):
        raise ValueError("invalid storage key")
    return root.joinpath(*segments)


class LocalObjectStorage:
    """Blobs live under ``root_dir``; every filesystem call runs in the threadpool."""

    def __init__(self, *, root_dir: str) -> None:
        self._root = Path(root_dir)

    def resolve_path(self, key: str) -> Path:
        return _key_to_path(self._root, key)

    async def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        # Content type is not stored; downloads use the attachment's mime_type.
        _ = content_type
        target = self.resolve_path(key)

        def _write_then_rename() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            partial = target.with_name(target.name + ".tmp")
            _ = partial.write_bytes(data)
            # Readers never see a half-written blob.
            _ = partial.replace(target)

        await run_in_threadpool(_write_then_rename)

    async def get_bytes(self, key: str) -> bytes:
        return await run_in_threadpool(self.resolve_path(key).read_bytes)

    async def delete(self, key: str) -> None:
        await run_in_threadpool(self.resolve_path(key).unlink, missing_ok=True)

    async def exists(self, key: str) -> bool:
        return await run_in_threadpool(self.resolve_path(key).is_file)
