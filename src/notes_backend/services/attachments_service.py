from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.errors import (
    AttachmentError,
    InvalidStateError,
    NotFoundError,
    NotFoundOrForbiddenError,
    PersistFailedError,
    QuotaExceededError,
    StorageWriteFailedError,
)
from notes_backend.integrations.storage.object_storage import (
    ObjectStorage,
    build_attachment_blob_key,
)
from notes_backend.models import (
    ATTACHMENT_STATE_ACTIVE,
    ATTACHMENT_STATE_SOFT_DELETED,
    Attachment,
    QuotaLedger,
    utc_now,
)
from notes_backend.repositories import attachments_repo
from notes_backend.services.attachment_policy import AttachmentPolicy
from notes_backend.services.quota_service import QuotaLedgerService

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _in_transaction(session: AsyncSession, work: Callable[[], Awaitable[T]]) -> T:
    try:
        # A request-scoped session may already be inside an implicit transaction
        # (autobegin after a read). `session.begin()` would raise then.
        if session.in_transaction():
            result = await work()
            await session.commit()
            return result

        async with session.begin():
            return await work()
    except Exception:
        try:
            await session.rollback()
        except Exception:
            logger.warning("rollback failed", exc_info=True)
        raise


async def _end_read(session: AsyncSession) -> None:
    # Release the read transaction (on SQLite it holds the write lock).
    if session.in_transaction():
        await session.commit()


class AttachmentLifecycle:
    """Upload, soft-delete, restore, purge and reconcile attachments.

    Every transition that changes what counts against quota touches the attachment
    row and the owner's ledger in one transaction, after locking the ledger row.
    Soft-deleted attachments release their bytes immediately; the blob stays until
    purge.
    """

    def __init__(
        self,
        *,
        storage: ObjectStorage,
        ledger: QuotaLedgerService,
        policy: AttachmentPolicy,
    ) -> None:
        self.storage = storage
        self.ledger = ledger
        self.policy = policy

    async def _remove_orphan_blob(self, blob_key: str) -> None:
        try:
            await self.storage.delete(blob_key)
        except Exception:
            # The record is already gone; the orphan is left for an external sweep.
            logger.warning("orphan blob cleanup failed blob_key=%s", blob_key, exc_info=True)

    async def _discard_purged_blob(self, attachment_id: str, blob_key: str) -> None:
        try:
            present = await self.storage.exists(blob_key)
        except Exception:
            logger.warning(
                "attachment blob check failed attachment_id=%s", attachment_id, exc_info=True
            )
            return
        if not present:
            logger.warning("attachment blob already absent attachment_id=%s", attachment_id)
            return
        await self._remove_orphan_blob(blob_key)

    async def upload(
        self,
        session: AsyncSession,
        *,
        user_id: int,
        note_id: str,
        filename: str | None,
        mime_type: str | None,
        data: bytes,
    ) -> Attachment:
        size_bytes = len(data)

        try:
            note = await attachments_repo.get_note_owned(session, user_id=user_id, note_id=note_id)
            if note is None:
                raise NotFoundError("note not found")

            type_category, file_ext = self.policy.classify(filename)
            self.policy.check_size(type_category, size_bytes)

            admitted = await self.ledger.admit(
                session, user_id=user_id, candidate_bytes=size_bytes
            )
        finally:
            # No transaction may stay open across the blob write.
            await _end_read(session)
        if not admitted:
            raise QuotaExceededError()

        attachment_id = str(uuid.uuid4())
        blob_key = build_attachment_blob_key(
            user_id=user_id, attachment_id=attachment_id, file_ext=file_ext
        )

        try:
            await self.storage.put_bytes(blob_key, data, content_type=mime_type)
        except Exception as exc:
            logger.warning(
                "attachment blob write failed user_id=%s note_id=%s", user_id, note_id, exc_info=True
            )
            raise StorageWriteFailedError() from exc

        now = utc_now()
        attachment = Attachment(
            id=attachment_id,
            note_id=note_id,
            blob_key=blob_key,
            original_filename=(filename or "").strip()[:255] or attachment_id,
            size_bytes=size_bytes,
            type_category=type_category,
            file_ext=file_ext,
            mime_type=mime_type or None,
            state=ATTACHMENT_STATE_ACTIVE,
            created_at=now,
            updated_at=now,
        )

        async def _persist() -> Attachment:
            ok = await self.ledger.apply_admitted(
                session, user_id=user_id, size_bytes=size_bytes, type_category=type_category
            )
            if not ok:
                raise QuotaExceededError()
            session.add(attachment)
            await session.flush()
            return attachment

        try:
            created = await _in_transaction(session, _persist)
        except AttachmentError:
            await self._remove_orphan_blob(blob_key)
            raise
        except Exception as exc:
            logger.warning(
                "attachment persist failed user_id=%s note_id=%s attachment_id=%s",
                user_id,
                note_id,
                attachment_id,
                exc_info=True,
            )
            await self._remove_orphan_blob(blob_key)
            raise PersistFailedError() from exc

        logger.info(
            "attachment uploaded user_id=%s note_id=%s attachment_id=%s size_bytes=%s type=%s",
            user_id,
            note_id,
            attachment_id,
            size_bytes,
            type_category,
        )
        return created

    async def list_active(
        self, session: AsyncSession, *, user_id: int, note_id: str
    ) -> list[Attachment]:
        try:
            note = await attachments_repo.get_note_owned(session, user_id=user_id, note_id=note_id)
            if note is None:
                raise NotFoundError("note not found")
            return await attachments_repo.list_note_attachments(session, note_id=note_id)
        finally:
            await _end_read(session)

    async def get_attachment(
        self, session: AsyncSession, *, user_id: int, attachment_id: str
    ) -> Attachment:
        row = await attachments_repo.get_attachment_owned(
            session, user_id=user_id, attachment_id=attachment_id, state=ATTACHMENT_STATE_ACTIVE
        )
        await _end_read(session)
        if row is None:
            raise NotFoundError("attachment not found")
        return row

    async def read_content(
        self, session: AsyncSession, *, user_id: int, attachment_id: str
    ) -> tuple[Attachment, bytes]:
        row = await self.get_attachment(session, user_id=user_id, attachment_id=attachment_id)
        if not row.blob_key or not await self.storage.exists(row.blob_key):
            logger.warning("attachment blob missing attachment_id=%s", row.id)
            raise NotFoundError("attachment content missing")
        return row, await self.storage.get_bytes(row.blob_key)

    async def soft_delete(self, session: AsyncSession, *, user_id: int, attachment_id: str) -> None:
        async def _work() -> Attachment:
            await self.ledger.lock(session, user_id=user_id)
            row = await attachments_repo.get_attachment_owned(
                session,
                user_id=user_id,
                attachment_id=attachment_id,
                state=ATTACHMENT_STATE_ACTIVE,
            )
            if row is None:
                raise NotFoundOrForbiddenError()

            now = utc_now()
            row.state = ATTACHMENT_STATE_SOFT_DELETED
            row.deleted_at = now
            row.updated_at = now
            session.add(row)
            await self.ledger.apply(
                session,
                user_id=user_id,
                delta_bytes=-row.size_bytes,
                type_category=row.type_category,
            )
            await session.flush()
            return row

        row = await _in_transaction(session, _work)
        # Blob kept for restore.
        logger.info(
            "attachment soft-deleted user_id=%s attachment_id=%s size_bytes=%s",
            user_id,
            row.id,
            row.size_bytes,
        )

    async def restore(self, session: AsyncSession, *, user_id: int, attachment_id: str) -> None:
        async def _work() -> Attachment:
            await self.ledger.lock(session, user_id=user_id)
            row = await attachments_repo.get_attachment_owned(
                session,
                user_id=user_id,
                attachment_id=attachment_id,
                state=ATTACHMENT_STATE_SOFT_DELETED,
            )
            if row is None:
                raise NotFoundOrForbiddenError()

            ok = await self.ledger.apply_admitted(
                session,
                user_id=user_id,
                size_bytes=row.size_bytes,
                type_category=row.type_category,
            )
            if not ok:
                raise QuotaExceededError("restoring this attachment would exceed the storage quota")

            row.state = ATTACHMENT_STATE_ACTIVE
            row.deleted_at = None
            row.updated_at = utc_now()
            session.add(row)
            await session.flush()
            return row

        row = await _in_transaction(session, _work)
        logger.info(
            "attachment restored user_id=%s attachment_id=%s size_bytes=%s",
            user_id,
            row.id,
            row.size_bytes,
        )

    async def purge(self, session: AsyncSession, *, attachment_id: str) -> None:
        """Remove a soft-deleted attachment and its blob for good. Operator only.

        The record is deleted and committed before the blob goes, so a failed commit
        never leaves a restorable record without content. A blob that cannot be
        removed afterwards is an orphan and is only logged.
        """

        async def _work() -> Attachment:
            owner_id = await attachments_repo.get_owner_user_id(session, attachment_id=attachment_id)
            if owner_id is None:
                raise InvalidStateError("attachment is not soft-deleted")
            # Serialize with restore for the same owner.
            await self.ledger.lock(session, user_id=owner_id)

            row = await attachments_repo.get_attachment(session, attachment_id=attachment_id)
            if row is None or row.state != ATTACHMENT_STATE_SOFT_DELETED:
                raise InvalidStateError("attachment is not soft-deleted")

            await attachments_repo.delete_attachment_row(session, attachment_id=row.id)
            return row

        row = await _in_transaction(session, _work)

        if row.blob_key:
            await self._discard_purged_blob(row.id, row.blob_key)
        logger.info("attachment purged attachment_id=%s size_bytes=%s", row.id, row.size_bytes)

    async def reconcile(self, session: AsyncSession, *, user_id: int) -> QuotaLedger:
        """Rebuild the user's ledger from the attachments that count against quota."""

        async def _work() -> QuotaLedger:
            before = await self.ledger.lock(session, user_id=user_id)
            before_used = before.used_bytes
            used, images, documents = await attachments_repo.sum_usage_for_user(
                session, user_id=user_id, state=ATTACHMENT_STATE_ACTIVE
            )
            await self.ledger.replace(
                session,
                user_id=user_id,
                used_bytes=used,
                file_count=images + documents,
                image_count=images,
                document_count=documents,
            )
            ledger = await self.ledger.get(session, user_id=user_id)
            if ledger is None:
                raise RuntimeError(f"quota ledger missing after reconcile user_id={user_id}")
            if before_used != used:
                logger.info(
                    "quota ledger drift repaired user_id=%s used_bytes=%s->%s",
                    user_id,
                    before_used,
                    used,
                )
            return ledger

        return await _in_transaction(session, _work)

    async def get_quota(self, session: AsyncSession, *, user_id: int) -> QuotaLedger:
        ledger = await self.ledger.get(session, user_id=user_id)
        if ledger is not None:
            await _end_read(session)
            return ledger

        async def _create() -> QuotaLedger:
            await self.ledger.create(session, user_id=user_id)
            created = await self.ledger.get(session, user_id=user_id)
            if created is None:
                raise RuntimeError(f"quota ledger missing after insert user_id={user_id}")
            return created

        return await _in_transaction(session, _create)

    async def list_deleted(
        self, session: AsyncSession, *, user_id: int | None = None, limit: int = 100
    ) -> list[tuple[Attachment, int]]:
        rows = await attachments_repo.list_soft_deleted(session, user_id=user_id, limit=limit)
        await _end_read(session)
        return rows

