"""Message store contract and its SQLAlchemy implementation.

Everything above the store (tools, embedding index, messaging service)
depends only on the :class:`MessageStore` protocol.  Each
:class:`SqlMessageStore` call runs in its own session and commits before
returning, so readers only ever see committed rows.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from vertext.memory.models import MessageType
from vertext.memory.repository import MessageRepository

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from vertext.memory.models import Message, Thread


@runtime_checkable
class MessageStore(Protocol):
    """Query/update interface over threads and messages."""

    async def get_thread_by_id(self, thread_id: int) -> Thread | None: ...

    async def list_threads(
        self, limit: int, *, include_archived: bool = False
    ) -> list[Thread]: ...

    async def get_or_create_thread(
        self, recipient: str, recipient_name: str | None = None
    ) -> Thread: ...

    async def insert_thread(self, recipient: str, **fields: Any) -> Thread: ...

    async def update_thread(self, thread_id: int, **fields: Any) -> Thread: ...

    async def insert_message(
        self,
        thread_id: int,
        address: str,
        body: str,
        date: int,
        *,
        message_type: int = MessageType.INBOX,
        is_read: bool = False,
    ) -> Message: ...

    async def update_message_type(self, message_id: int, message_type: int) -> Message: ...

    async def get_recent_messages(self, limit: int) -> list[Message]: ...

    async def get_messages_for_thread(self, thread_id: int, limit: int) -> list[Message]: ...

    async def search_messages_by_text(self, query: str, limit: int) -> list[Message]: ...

    async def count_messages(self) -> int: ...

    async def count_embedded_messages(self, version: int) -> int: ...

    async def count_messages_needing_embedding(self, version: int) -> int: ...

    async def get_messages_needing_embedding(
        self, limit: int, *, version: int, offset: int = 0
    ) -> list[Message]: ...

    async def get_embedded_messages_batch(
        self, limit: int, offset: int, *, version: int
    ) -> list[Message]: ...

    def iter_message_bodies(self, batch_size: int) -> AsyncIterator[list[str]]: ...

    async def update_embedding(
        self,
        message_id: int,
        vector: list[float],
        version: int,
        timestamp: datetime | None = None,
    ) -> None: ...


class SqlMessageStore:
    """:class:`MessageStore` backed by an ``async_sessionmaker``."""

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory

    # ── Threads ──────────────────────────────────────────────────

    async def get_thread_by_id(self, thread_id: int) -> Thread | None:
        async with self._factory() as session:
            return await MessageRepository(session).get_thread(thread_id)

    async def list_threads(
        self, limit: int, *, include_archived: bool = False
    ) -> list[Thread]:
        async with self._factory() as session:
            return await MessageRepository(session).list_threads(
                limit=limit, include_archived=include_archived
            )

    async def get_or_create_thread(
        self, recipient: str, recipient_name: str | None = None
    ) -> Thread:
        async with self._factory() as session:
            repo = MessageRepository(session)
            thread = await repo.find_thread_by_recipient(recipient)
            if thread is None:
                thread = await repo.create_thread(recipient, recipient_name=recipient_name)
                await session.commit()
            return thread

    async def insert_thread(self, recipient: str, **fields: Any) -> Thread:
        async with self._factory() as session:
            thread = await MessageRepository(session).create_thread(recipient, **fields)
            await session.commit()
            return thread

    async def update_thread(self, thread_id: int, **fields: Any) -> Thread:
        async with self._factory() as session:
            thread = await MessageRepository(session).update_thread(thread_id, **fields)
            await session.commit()
            return thread

    # ── Messages ─────────────────────────────────────────────────

    async def insert_message(
        self,
        thread_id: int,
        address: str,
        body: str,
        date: int,
        *,
        message_type: int = MessageType.INBOX,
        is_read: bool = False,
    ) -> Message:
        async with self._factory() as session:
            message = await MessageRepository(session).add_message(
                thread_id,
                address,
                body,
                date,
                message_type=message_type,
                is_read=is_read,
            )
            await session.commit()
            return message

    async def update_message_type(self, message_id: int, message_type: int) -> Message:
        async with self._factory() as session:
            message = await MessageRepository(session).set_message_type(
                message_id, message_type
            )
            await session.commit()
            return message

    async def get_recent_messages(self, limit: int) -> list[Message]:
        async with self._factory() as session:
            return await MessageRepository(session).recent_messages(limit)

    async def get_messages_for_thread(self, thread_id: int, limit: int) -> list[Message]:
        async with self._factory() as session:
            return await MessageRepository(session).thread_messages(thread_id, limit)

    async def search_messages_by_text(self, query: str, limit: int) -> list[Message]:
        async with self._factory() as session:
            return await MessageRepository(session).search_text(query, limit=limit)

    async def count_messages(self) -> int:
        async with self._factory() as session:
            return await MessageRepository(session).count_messages()

    # ── Embeddings ───────────────────────────────────────────────

    async def count_embedded_messages(self, version: int) -> int:
        async with self._factory() as session:
            return await MessageRepository(session).count_embedded(version)

    async def count_messages_needing_embedding(self, version: int) -> int:
        async with self._factory() as session:
            return await MessageRepository(session).count_stale(version)

    async def get_messages_needing_embedding(
        self, limit: int, *, version: int, offset: int = 0
    ) -> list[Message]:
        async with self._factory() as session:
            return await MessageRepository(session).stale_messages(
                version, limit=limit, offset=offset
            )

    async def get_embedded_messages_batch(
        self, limit: int, offset: int, *, version: int
    ) -> list[Message]:
        async with self._factory() as session:
            return await MessageRepository(session).embedded_messages(
                version, limit=limit, offset=offset
            )

    async def iter_message_bodies(self, batch_size: int) -> AsyncIterator[list[str]]:
        """Yield message bodies page by page, never holding the full corpus."""
        last_id = 0
        while True:
            async with self._factory() as session:
                rows = await MessageRepository(session).message_bodies_after(
                    last_id, batch_size
                )
            if not rows:
                return
            last_id = rows[-1][0]
            yield [body for _, body in rows]

    async def update_embedding(
        self,
        message_id: int,
        vector: list[float],
        version: int,
        timestamp: datetime | None = None,
    ) -> None:
        async with self._factory() as session:
            await MessageRepository(session).save_embedding(
                message_id, vector, version, timestamp
            )
            await session.commit()
