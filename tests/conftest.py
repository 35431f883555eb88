"""Shared test fixtures for vertext."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from vertext.embedding.index import EmbeddingIndex
from vertext.mcp.server import McpServer
from vertext.memory.db import create_session_factory
from vertext.memory.models import Base, MessageType
from vertext.memory.store import SqlMessageStore
from vertext.messaging import LocalTransport, MessagingService
from vertext.tools.builtin import create_default_registry

from tests.fixtures.fakes import StaticEmbeddingModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from vertext.tools.registry import ToolRegistry

BASE_DATE = 1_700_000_000_000  # 2023-11-14, epoch ms


@pytest.fixture(autouse=True)
def _restore_vertext_logger():
    """Undo handler/level changes made by configure_logging."""
    logger = logging.getLogger("vertext")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
async def db_session() -> AsyncSession:  # type: ignore[misc]
    """In-memory SQLite async session with FK enforcement."""
    engine = create_async_engine("sqlite+aiosqlite://")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fks(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def session_factory() -> Any:
    """Session factory over a fresh in-memory database."""
    factory, engine = await create_session_factory("sqlite+aiosqlite://")
    yield factory
    await engine.dispose()


@pytest.fixture
def store(session_factory: Any) -> SqlMessageStore:
    return SqlMessageStore(session_factory)


@pytest.fixture
def make_messages(store: SqlMessageStore) -> Any:
    """Factory fixture: insert messages for one recipient, return them in order."""

    async def _make(
        recipient: str,
        bodies: list[str],
        *,
        start: int = BASE_DATE,
        step: int = 60_000,
        message_type: int = MessageType.INBOX,
        recipient_name: str | None = None,
    ) -> list[Any]:
        thread = await store.get_or_create_thread(recipient, recipient_name)
        messages = []
        for i, body in enumerate(bodies):
            messages.append(
                await store.insert_message(
                    thread.id,
                    recipient,
                    body,
                    start + i * step,
                    message_type=message_type,
                )
            )
        return messages

    return _make


@pytest.fixture
async def seeded_store(store: SqlMessageStore, make_messages: Any) -> SqlMessageStore:
    """Two threads: Alice (three received) and Bob (two sent)."""
    await make_messages(
        "+15550001",
        [
            "Did you pay the invoice for the plumber?",
            "Dinner at the Italian place tonight?",
            "The invoice is attached, please check the amount",
        ],
        recipient_name="Alice",
    )
    await make_messages(
        "+15550002",
        ["Running late, traffic on the bridge", "Meeting moved to Thursday"],
        start=BASE_DATE + 3_600_000,
        message_type=MessageType.SENT,
    )
    return store


# ── Indexed fixtures ─────────────────────────────────────────────

SEED_VECTORS: dict[str, list[float]] = {
    "Did you pay the invoice for the plumber?": [1.0, 0.0, 0.0],
    "Dinner at the Italian place tonight?": [0.0, 1.0, 0.0],
    "The invoice is attached, please check the amount": [0.9, 0.1, 0.0],
    "Running late, traffic on the bridge": [0.0, 0.0, 1.0],
    "Meeting moved to Thursday": [0.0, 0.2, 1.0],
    "invoice": [1.0, 0.0, 0.0],
    "invoices": [1.0, 0.0, 0.0],
    "dinner": [0.0, 1.0, 0.0],
}


@pytest.fixture
def seed_model() -> StaticEmbeddingModel:
    return StaticEmbeddingModel(SEED_VECTORS)


@pytest.fixture
async def index(seeded_store: SqlMessageStore, seed_model: StaticEmbeddingModel) -> EmbeddingIndex:
    """Index over the seeded store with every message embedded."""
    idx = EmbeddingIndex(seeded_store, seed_model, search_batch_size=2)
    await idx.backfill()
    return idx


@pytest.fixture
def transport() -> LocalTransport:
    return LocalTransport(fail_addresses={"+15559999"})


@pytest.fixture
def messaging(seeded_store: SqlMessageStore, transport: LocalTransport) -> MessagingService:
    return MessagingService(seeded_store, transport)


@pytest.fixture
def registry(
    seeded_store: SqlMessageStore, index: EmbeddingIndex, messaging: MessagingService
) -> ToolRegistry:
    return create_default_registry(seeded_store, index, messaging)


@pytest.fixture
def server(registry: ToolRegistry) -> McpServer:
    return McpServer(registry)
