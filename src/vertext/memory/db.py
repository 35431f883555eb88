"""Engine and session factory creation for the SQLite message store."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from vertext.memory.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession


def _is_memory_url(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith(":"))


async def create_session_factory(
    url: str,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create async engine + sessionmaker and make sure the schema exists."""
    if "~" in url:
        url = url.replace("~", str(Path.home()))

    engine_kwargs: dict[str, object] = {}
    if url.startswith("sqlite"):
        if _is_memory_url(url):
            # In-memory SQLite needs StaticPool so all sessions share
            # the same connection (and thus the same database).
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            db_path = url.split("///")[-1] if "///" in url else ""
            if db_path:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            engine_kwargs["poolclass"] = NullPool

    engine = create_async_engine(url, **engine_kwargs)

    if url.startswith("sqlite"):

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_fks(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    return factory, engine
