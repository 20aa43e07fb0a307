from __future__ import annotations

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.models import User
from notes_backend.repositories import quota_repo


async def create_user(
    session: AsyncSession,
    *,
    username: str,
    api_token: str | None = None,
    is_admin: bool = False,
) -> User:
    """Create a user together with its zeroed quota ledger row."""
    user = User(username=username, api_token=api_token, is_active=True, is_admin=is_admin)
    try:
        session.add(user)
        await session.flush()
        if user.id is None:
            raise RuntimeError("user missing id after flush")
        await quota_repo.ensure_ledger(session, user_id=int(user.id))
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(user)
    return user


async def list_user_ids(session: AsyncSession) -> list[int]:
    stmt = select(User.id).order_by(User.id)  # pyright: ignore[reportArgumentType]
    return [int(x) for x in (await session.exec(stmt)).all() if x is not None]


async def get_user(session: AsyncSession, *, user_id: int) -> User | None:
    return (await session.exec(select(User).where(User.id == user_id))).first()
