from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.models import (
    TYPE_CATEGORY_DOCUMENT,
    TYPE_CATEGORY_IMAGE,
    QuotaLedger,
    utc_now,
)

_table = QuotaLedger.__table__  # pyright: ignore[reportAttributeAccessIssue]


def _type_counter_column(type_category: str) -> sa.Column[int]:
    if type_category == TYPE_CATEGORY_IMAGE:
        return _table.c.image_count
    if type_category == TYPE_CATEGORY_DOCUMENT:
        return _table.c.document_count
    raise ValueError(f"unknown type category: {type_category}")


def _decrement(col: sa.ColumnElement[int], amount: sa.ColumnElement[int] | int = 1):
    # Clamp at zero; portable across SQLite and PostgreSQL (no GREATEST on SQLite).
    return sa.case((col - amount < 0, 0), else_=col - amount)


async def get_ledger(session: AsyncSession, *, user_id: int) -> QuotaLedger | None:
    stmt = (
        select(QuotaLedger)
        .where(QuotaLedger.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return (await session.exec(stmt)).first()


async def ensure_ledger(session: AsyncSession, *, user_id: int) -> None:
    """Insert a zeroed row unless one exists. Concurrent callers do not conflict."""
    values: dict[str, object] = {
        "user_id": user_id,
        "used_bytes": 0,
        "file_count": 0,
        "image_count": 0,
        "document_count": 0,
        "updated_at": utc_now(),
    }
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    else:
        if await get_ledger(session, user_id=user_id) is None:
            await session.exec(sa.insert(_table).values(**values))
        return

    stmt = dialect_insert(_table).values(**values).on_conflict_do_nothing(index_elements=["user_id"])
    await session.exec(stmt)


async def lock_ledger(session: AsyncSession, *, user_id: int) -> QuotaLedger:
    """Return the user's ledger row, creating it if missing, locked for this transaction.

    PostgreSQL takes a row lock (FOR UPDATE). SQLite ignores FOR UPDATE; there the
    transaction already holds the database write lock (BEGIN IMMEDIATE, see db.py).
    """
    stmt = (
        select(QuotaLedger)
        .where(QuotaLedger.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = (await session.exec(stmt)).first()
    if row is not None:
        return row

    await ensure_ledger(session, user_id=user_id)
    row = (await session.exec(stmt)).first()
    if row is None:
        raise RuntimeError(f"quota ledger row missing after insert user_id={user_id}")
    return row


async def apply_delta(
    session: AsyncSession,
    *,
    user_id: int,
    delta_bytes: int,
    type_category: str,
) -> None:
    """Apply a signed byte delta and move file/type counters by one in its direction."""
    type_col = _type_counter_column(type_category)
    now = utc_now()
    if delta_bytes >= 0:
        values = {
            "used_bytes": _table.c.used_bytes + int(delta_bytes),
            "file_count": _table.c.file_count + 1,
            type_col.name: type_col + 1,
            "updated_at": now,
        }
    else:
        values = {
            "used_bytes": _decrement(_table.c.used_bytes, -int(delta_bytes)),
            "file_count": _decrement(_table.c.file_count),
            type_col.name: _decrement(type_col),
            "updated_at": now,
        }

    await ensure_ledger(session, user_id=user_id)
    await session.exec(sa.update(_table).where(_table.c.user_id == user_id).values(**values))


async def apply_admitted(
    session: AsyncSession,
    *,
    user_id: int,
    size_bytes: int,
    type_category: str,
    max_bytes: int,
) -> bool:
    """Add ``size_bytes`` only if the result stays within ``max_bytes``.

    Admission and update are one guarded UPDATE, so concurrent writers for the same
    user can never both pass the check. Returns False when the guard rejects.
    The row must already exist (call lock_ledger first).
    """
    type_col = _type_counter_column(type_category)
    size = int(size_bytes)
    stmt = (
        sa.update(_table)
        .where(_table.c.user_id == user_id)
        .where(_table.c.used_bytes + size <= int(max_bytes))
        .values(
            {
                "used_bytes": _table.c.used_bytes + size,
                "file_count": _table.c.file_count + 1,
                type_col.name: type_col + 1,
                "updated_at": utc_now(),
            }
        )
    )
    result = await session.exec(stmt)
    return int(result.rowcount or 0) == 1


async def replace_ledger(
    session: AsyncSession,
    *,
    user_id: int,
    used_bytes: int,
    file_count: int,
    image_count: int,
    document_count: int,
) -> None:
    await ensure_ledger(session, user_id=user_id)
    await session.exec(
        sa.update(_table)
        .where(_table.c.user_id == user_id)
        .values(
            used_bytes=max(0, int(used_bytes)),
            file_count=max(0, int(file_count)),
            image_count=max(0, int(image_count)),
            document_count=max(0, int(document_count)),
            updated_at=utc_now(),
        )
    )
