from __future__ import annotations

from typing import Protocol

from notes_backend.config import settings


class ObjectStorage(Protocol):
    """Blob store for attachment content. Keys are never reused."""

    async def put_bytes(
        self, key: str, data: bytes, *, content_type: str | None = None
    ) -> None: ...

    async def get_bytes(self, key: str) -> bytes: ...

    # Deleting a missing key is not an error.
    async def delete(self, key: str) -> None: ...

    async def exists(self, key: str) -> bool: ...


def build_attachment_blob_key(*, user_id: int, attachment_id: str, file_ext: str = "") -> str:
    """``{user_id}/{attachment_id}.{ext}``; the same key is used on disk and in S3."""
    if not file_ext:
        return f"{user_id}/{attachment_id}"
    return f"{user_id}/{attachment_id}.{file_ext}"


def get_object_storage() -> ObjectStorage:
    if not settings.s3_configured():
        from .local_storage import LocalObjectStorage

        return LocalObjectStorage(root_dir=settings.attachments_local_dir)

    from .s3_storage import S3ObjectStorage

    return S3ObjectStorage(
        endpoint_url=settings.s3_endpoint_url,
        region=settings.s3_region,
        bucket=settings.s3_bucket,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        force_path_style=settings.s3_force_path_style,
    )
