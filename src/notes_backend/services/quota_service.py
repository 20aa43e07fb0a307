from __future__ import annotations

import logging

from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.models import QuotaLedger
from notes_backend.repositories import quota_repo

logger = logging.getLogger(__name__)


class QuotaLedgerService:
    """Per-user storage ledger. Mutations run inside the caller's transaction."""

    def __init__(self, *, max_user_storage_bytes: int) -> None:
        self.max_user_storage_bytes = int(max_user_storage_bytes)

    async def admit(self, session: AsyncSession, *, user_id: int, candidate_bytes: int) -> bool:
        # Read-only pre-check; apply_admitted re-checks under the lock.
        ledger = await quota_repo.get_ledger(session, user_id=user_id)
        used = ledger.used_bytes if ledger is not None else 0
        return used + int(candidate_bytes) <= self.max_user_storage_bytes

    async def lock(self, session: AsyncSession, *, user_id: int) -> QuotaLedger:
        return await quota_repo.lock_ledger(session, user_id=user_id)

    async def apply(
        self, session: AsyncSession, *, user_id: int, delta_bytes: int, type_category: str
    ) -> None:
        await quota_repo.apply_delta(
            session, user_id=user_id, delta_bytes=delta_bytes, type_category=type_category
        )

    async def apply_admitted(
        self, session: AsyncSession, *, user_id: int, size_bytes: int, type_category: str
    ) -> bool:
        await quota_repo.lock_ledger(session, user_id=user_id)
        ok = await quota_repo.apply_admitted(
            session,
            user_id=user_id,
            size_bytes=size_bytes,
            type_category=type_category,
            max_bytes=self.max_user_storage_bytes,
        )
        if not ok:
            logger.info(
                "quota admission rejected user_id=%s size_bytes=%s max=%s",
                user_id,
                size_bytes,
                self.max_user_storage_bytes,
            )
        return ok

    async def replace(
        self,
        session: AsyncSession,
        *,
        user_id: int,
        used_bytes: int,
        file_count: int,
        image_count: int,
        document_count: int,
    ) -> None:
        await quota_repo.replace_ledger(
            session,
            user_id=user_id,
            used_bytes=used_bytes,
            file_count=file_count,
            image_count=image_count,
            document_count=document_count,
        )

    async def get(self, session: AsyncSession, *, user_id: int) -> QuotaLedger | None:
        return await quota_repo.get_ledger(session, user_id=user_id)

    async def create(self, session: AsyncSession, *, user_id: int) -> None:
        await quota_repo.ensure_ledger(session, user_id=user_id)
