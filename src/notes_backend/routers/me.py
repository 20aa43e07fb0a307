from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.db import get_session
from notes_backend.deps import RequestContext, get_attachment_lifecycle, get_request_context
from notes_backend.schemas.attachments import StorageQuota
from notes_backend.services.attachments_service import AttachmentLifecycle

router = APIRouter(tags=["me"])


@router.get("/me/storage", response_model=StorageQuota)
async def get_my_storage(
    ctx: RequestContext = Depends(get_request_context),
    session: AsyncSession = Depends(get_session),
    lifecycle: AttachmentLifecycle = Depends(get_attachment_lifecycle),
) -> StorageQuota:
    ledger = await lifecycle.get_quota(session, user_id=ctx.user_id)
    return StorageQuota.from_ledger(ledger, max_bytes=lifecycle.ledger.max_user_storage_bytes)
