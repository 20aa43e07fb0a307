"""Operator endpoints: deleted-attachment listing, purge, ledger reconciliation."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.db import get_session
from notes_backend.deps import RequestContext, get_attachment_lifecycle, require_admin
from notes_backend.errors import NotFoundError
from notes_backend.schemas.attachments import Attachment as AttachmentSchema
from notes_backend.schemas.attachments import (
    DeletedAttachment,
    DeletedAttachmentList,
    StorageQuota,
)
from notes_backend.services.attachments_service import AttachmentLifecycle
from notes_backend.services import users_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/attachments/deleted", response_model=DeletedAttachmentList)
async def list_deleted_attachments(
    user_id: int | None = Query(default=None, ge=1),
    limit: int = Query(default=100, ge=1, le=1000),
    _admin: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> DeletedAttachmentList:
    rows = await lifecycle.list_deleted(session, user_id=user_id, limit=limit)
    items = [
        DeletedAttachment(
            **AttachmentSchema.from_row(row).model_dump(),
            owner_user_id=owner_id,
        )
        for row, owner_id in rows
    ]
    return DeletedAttachmentList(items=items)


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def purge_attachment(
    attachment_id: str,
    admin: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> Response:
    await lifecycle.purge(session, attachment_id=attachment_id)
    logger.info("admin purge attachment_id=%s by user_id=%s", attachment_id, admin.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/users/{user_id}/storage/reconcile", response_model=StorageQuota)
async def reconcile_user_storage(
    user_id: int,
    _admin: RequestContext = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> StorageQuota:
    if await users_service.get_user(session, user_id=user_id) is None:
        raise NotFoundError("user not found")
    ledger = await lifecycle.reconcile(session, user_id=user_id)
    return StorageQuota.from_ledger(ledger, max_bytes=lifecycle.ledger.max_user_storage_bytes)
