from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from notes_backend.config import settings
from notes_backend.db_urls import (
    ensure_sqlite_parent_dir,
    is_sqlite_url,
    normalize_database_url_for_async,
)


def _install_sqlite_immediate_begin(engine: AsyncEngine) -> None:
    # SQLite has no row locks; taking the write lock at BEGIN serializes ledger
    # updates the way SELECT ... FOR UPDATE does on PostgreSQL.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:  # pyright: ignore[reportUnusedFunction]
        # Stop the driver from emitting its own deferred BEGIN.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:  # pyright: ignore[reportUnusedFunction]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _create_async_engine(database_url: str) -> AsyncEngine:
    url = normalize_database_url_for_async(database_url)
    if is_sqlite_url(url):
        ensure_sqlite_parent_dir(url)
        engine = create_async_engine(
            url,
            echo=False,
            connect_args={"timeout": float(settings.sqlite_busy_timeout_seconds)},
        )
        _install_sqlite_immediate_begin(engine)
        return engine
    return create_async_engine(url, echo=False, pool_pre_ping=True)


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    # Tests override settings.database_url and call reset_engine_cache() to rebuild.
    return _create_async_engine(settings.database_url)


def reset_engine_cache() -> None:
    get_engine.cache_clear()


async def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
    reset_engine_cache()


async def init_db() -> None:
    # Local/test bootstrap only; production schema comes from Alembic.
    from notes_backend import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def _session_maker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    async with _session_maker()() as session:
        yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    async with _session_maker()() as session:
        yield session
