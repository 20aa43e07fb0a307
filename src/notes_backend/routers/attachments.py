"""Attachments router."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse, Response
from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.db import get_session
from notes_backend.deps import RequestContext, get_attachment_lifecycle, get_request_context
from notes_backend.errors import NotFoundError, TooLargeError
from notes_backend.integrations.storage.local_storage import LocalObjectStorage
from notes_backend.schemas.attachments import Attachment as AttachmentSchema
from notes_backend.schemas.attachments import AttachmentList
from notes_backend.services.attachments_service import AttachmentLifecycle

router = APIRouter(tags=["attachments"])


def _content_disposition(filename: str) -> str:
    # Same rule as FileResponse: headers are latin-1, so anything quote() changes
    # (non-ASCII, quotes, CR/LF) goes out as RFC 5987 filename*.
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


async def _read_upload_file_limited(*, file: UploadFile, max_bytes: int) -> bytes:
    # Read the file in chunks and hard-stop once size exceeds max_bytes.
    buf = bytearray()
    chunk_size = 1024 * 1024
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise TooLargeError(details={"max_bytes": max_bytes})
    return bytes(buf)


@router.post(
    "/notes/{note_id}/attachments",
    response_model=AttachmentSchema,
    status_code=status.HTTP_201_CREATED,
)
async def upload_note_attachment(
    note_id: str,
    file: Annotated[UploadFile, File()],
    ctx: RequestContext = Depends(get_request_context),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> AttachmentSchema:
    # Per-type limits are enforced by the lifecycle; this only bounds memory.
    policy = lifecycle.policy
    data = await _read_upload_file_limited(
        file=file, max_bytes=max(policy.max_image_bytes, policy.max_document_bytes)
    )
    row = await lifecycle.upload(
        session,
        user_id=ctx.user_id,
        note_id=note_id,
        filename=file.filename,
        mime_type=file.content_type,
        data=data,
    )
    return AttachmentSchema.from_row(row)


@router.get("/notes/{note_id}/attachments", response_model=AttachmentList)
async def list_note_attachments(
    note_id: str,
    ctx: RequestContext = Depends(get_request_context),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> AttachmentList:
    rows = await lifecycle.list_active(session, user_id=ctx.user_id, note_id=note_id)
    return AttachmentList(items=[AttachmentSchema.from_row(r) for r in rows])


@router.get("/attachments/{attachment_id}", response_model=AttachmentSchema)
async def get_attachment(
    attachment_id: str,
    ctx: RequestContext = Depends(get_request_context),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> AttachmentSchema:
    row = await lifecycle.get_attachment(session, user_id=ctx.user_id, attachment_id=attachment_id)
    return AttachmentSchema.from_row(row)


@router.get("/attachments/{attachment_id}/content")
async def download_attachment(
    attachment_id: str,
    ctx: RequestContext = Depends(get_request_context),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> Response:
    storage = lifecycle.storage
    if isinstance(storage, LocalObjectStorage):
        row = await lifecycle.get_attachment(
            session, user_id=ctx.user_id, attachment_id=attachment_id
        )
        path = storage.resolve_path(row.blob_key or "")
        if not path.is_file():
            raise NotFoundError("attachment content missing")
        return FileResponse(
            path,
            media_type=row.mime_type or "application/octet-stream",
            filename=row.original_filename,
        )

    row, data = await lifecycle.read_content(
        session, user_id=ctx.user_id, attachment_id=attachment_id
    )
    headers = {"Content-Disposition": _content_disposition(row.original_filename)}
    return Response(
        content=data, media_type=row.mime_type or "application/octet-stream", headers=headers
    )


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(
    attachment_id: str,
    ctx: RequestContext = Depends(get_request_context),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> Response:
    await lifecycle.soft_delete(session, user_id=ctx.user_id, attachment_id=attachment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/attachments/{attachment_id}/restore", status_code=status.HTTP_204_NO_CONTENT)
async def restore_attachment(
    attachment_id: str,
    ctx: RequestContext = Depends(get_request_context),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> Response:
    await lifecycle.restore(session, user_id=ctx.user_id, attachment_id=attachment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
