from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import select

from notes_backend.config import settings
from notes_backend.db import session_scope
from notes_backend.integrations.storage.object_storage import get_object_storage
from notes_backend.models import User
from notes_backend.services.attachment_policy import AttachmentPolicy
from notes_backend.services.attachments_service import AttachmentLifecycle
from notes_backend.services.quota_service import QuotaLedgerService

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller, passed explicitly into service calls."""

    user_id: int
    username: str
    is_admin: bool = False


async def get_request_context(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> RequestContext:
    raw_token = creds.credentials if creds is not None else None
    token = (raw_token or "").strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing token")

    # Own short-lived session: services manage transactions on the request session.
    async with session_scope() as session:
        user = (await session.exec(select(User).where(User.api_token == token))).first()

    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="user disabled")
    if user.id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="user missing id"
        )

    request.state.auth_user_id = int(user.id)
    return RequestContext(user_id=int(user.id), username=user.username, is_admin=user.is_admin)


async def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin required")
    return ctx


@lru_cache(maxsize=1)
def get_attachment_lifecycle() -> AttachmentLifecycle:
    # Built once per process; tests call get_attachment_lifecycle.cache_clear() after
    # changing settings.
    policy = AttachmentPolicy.from_settings(settings)
    return AttachmentLifecycle(
        storage=get_object_storage(),
        ledger=QuotaLedgerService(max_user_storage_bytes=policy.max_user_storage_bytes),
        policy=policy,
    )
