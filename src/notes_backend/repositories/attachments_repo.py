from __future__ import annotations

from typing import cast

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.models import (
    ATTACHMENT_STATE_ACTIVE,
    ATTACHMENT_STATE_SOFT_DELETED,
    TYPE_CATEGORY_IMAGE,
    Attachment,
    Note,
)


def _is_null(column: object) -> ColumnElement[bool]:
    return cast(ColumnElement[object], column).is_(None)


async def get_note_owned(session: AsyncSession, *, user_id: int, note_id: str) -> Note | None:
    stmt = (
        select(Note)
        .where(Note.user_id == user_id)
        .where(Note.id == note_id)
        .where(_is_null(Note.deleted_at))
    )
    return (await session.exec(stmt)).first()


async def get_attachment(session: AsyncSession, *, attachment_id: str) -> Attachment | None:
    stmt = (
        select(Attachment)
        .where(Attachment.id == attachment_id)
        .execution_options(populate_existing=True)
    )
    return (await session.exec(stmt)).first()


async def get_attachment_owned(
    session: AsyncSession,
    *,
    user_id: int,
    attachment_id: str,
    state: str,
) -> Attachment | None:
    """Attachment in ``state`` whose note belongs to ``user_id``."""
    stmt = (
        select(Attachment)
        .join(Note, col(Note.id) == col(Attachment.note_id))
        .where(Attachment.id == attachment_id)
        .where(Note.user_id == user_id)
        .where(Attachment.state == state)
        .execution_options(populate_existing=True)
    )
    return (await session.exec(stmt)).first()


async def get_owner_user_id(session: AsyncSession, *, attachment_id: str) -> int | None:
    stmt = (
        select(Note.user_id)
        .join(Attachment, col(Attachment.note_id) == col(Note.id))
        .where(Attachment.id == attachment_id)
    )
    return (await session.exec(stmt)).first()


async def list_note_attachments(
    session: AsyncSession, *, note_id: str, state: str = ATTACHMENT_STATE_ACTIVE
) -> list[Attachment]:
    stmt = (
        select(Attachment)
        .where(Attachment.note_id == note_id)
        .where(Attachment.state == state)
        .order_by(col(Attachment.created_at).asc(), col(Attachment.id).asc())
    )
    return list((await session.exec(stmt)).all())


async def list_soft_deleted(
    session: AsyncSession, *, user_id: int | None = None, limit: int = 100
) -> list[tuple[Attachment, int]]:
    """Soft-deleted attachments with their owner id, most recently deleted first."""
    stmt = (
        select(Attachment, Note.user_id)
        .join(Note, col(Note.id) == col(Attachment.note_id))
        .where(Attachment.state == ATTACHMENT_STATE_SOFT_DELETED)
    )
    if user_id is not None:
        stmt = stmt.where(Note.user_id == user_id)
    stmt = stmt.order_by(col(Attachment.deleted_at).desc(), col(Attachment.id).asc()).limit(
        int(limit)
    )
    return [(row[0], int(row[1])) for row in (await session.exec(stmt)).all()]


async def sum_usage_for_user(
    session: AsyncSession, *, user_id: int, state: str = ATTACHMENT_STATE_ACTIVE
) -> tuple[int, int, int]:
    """Return (total bytes, image count, document count) over the user's attachments."""
    stmt = (
        select(
            Attachment.type_category,
            sa.func.count(col(Attachment.id)),
            sa.func.coalesce(sa.func.sum(col(Attachment.size_bytes)), 0),
        )
        .join(Note, col(Note.id) == col(Attachment.note_id))
        .where(Note.user_id == user_id)
        .where(Attachment.state == state)
        .group_by(col(Attachment.type_category))
    )
    total_bytes = 0
    images = 0
    documents = 0
    for type_category, count, size_sum in (await session.exec(stmt)).all():
        total_bytes += int(size_sum or 0)
        if type_category == TYPE_CATEGORY_IMAGE:
            images += int(count)
        else:
            documents += int(count)
    return total_bytes, images, documents


async def delete_attachment_row(session: AsyncSession, *, attachment_id: str) -> int:
    table = Attachment.__table__  # pyright: ignore[reportAttributeAccessIssue]
    result = await session.exec(sa.delete(table).where(table.c.id == attachment_id))
    return int(result.rowcount or 0)
