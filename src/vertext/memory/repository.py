"""Message repository: thread/message CRUD, listing, and embedding queries.

All mutating methods add objects to the session and flush, but do NOT
commit.  The caller controls transaction boundaries via
``session.commit()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select

from vertext.core.errors import StorageError
from vertext.memory.models import Message, MessageType, Thread, _utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

_THREAD_MUTABLE_FIELDS = frozenset(
    {
        "recipient",
        "recipient_name",
        "last_message",
        "last_message_date",
        "unread_count",
        "message_count",
        "is_pinned",
        "is_archived",
        "is_muted",
        "is_group",
        "group_name",
    }
)


def _stale_clause(version: int) -> Any:
    return or_(
        Message.embedding.is_(None),
        Message.embedding_version.is_(None),
        Message.embedding_version != version,
    )


class MessageRepository:
    """Async repository for threads and messages."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ── Thread ───────────────────────────────────────────────────

    async def get_thread(self, thread_id: int) -> Thread | None:
        return await self._session.get(Thread, thread_id)

    async def list_threads(
        self,
        *,
        limit: int = 50,
        offset: int = 0,
        include_archived: bool = False,
    ) -> list[Thread]:
        """List threads, pinned first, then most recent first."""
        stmt = select(Thread).order_by(
            Thread.is_pinned.desc(), Thread.last_message_date.desc(), Thread.id.desc()
        )
        if not include_archived:
            stmt = stmt.where(Thread.is_archived.is_(False))
        stmt = stmt.limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def find_thread_by_recipient(self, recipient: str) -> Thread | None:
        stmt = (
            select(Thread)
            .where(Thread.recipient == recipient, Thread.is_group.is_(False))
            .order_by(Thread.id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_thread(
        self,
        recipient: str,
        *,
        thread_id: int | None = None,
        recipient_name: str | None = None,
        **fields: Any,
    ) -> Thread:
        """Create a thread and return it with its ID."""
        unknown = set(fields) - _THREAD_MUTABLE_FIELDS
        if unknown:
            msg = f"Unknown thread fields: {', '.join(sorted(unknown))}"
            raise StorageError(msg)
        thread = Thread(recipient=recipient, recipient_name=recipient_name, **fields)
        if thread_id is not None:
            thread.id = thread_id
        self._session.add(thread)
        await self._session.flush()
        return thread

    async def update_thread(self, thread_id: int, **fields: Any) -> Thread:
        """Update thread columns in place.

        Raises StorageError if the thread does not exist or a field is unknown.
        """
        unknown = set(fields) - _THREAD_MUTABLE_FIELDS
        if unknown:
            msg = f"Unknown thread fields: {', '.join(sorted(unknown))}"
            raise StorageError(msg)
        thread = await self._session.get(Thread, thread_id)
        if thread is None:
            msg = f"Thread not found: {thread_id}"
            raise StorageError(msg)
        for key, value in fields.items():
            setattr(thread, key, value)
        await self._session.flush()
        return thread

    async def delete_thread(self, thread_id: int) -> None:
        """Delete a thread and its messages (embeddings go with them)."""
        thread = await self._session.get(Thread, thread_id)
        if thread is None:
            msg = f"Thread not found: {thread_id}"
            raise StorageError(msg)
        await self._session.delete(thread)
        await self._session.flush()

    # ── Message ──────────────────────────────────────────────────

    async def add_message(
        self,
        thread_id: int,
        address: str,
        body: str,
        date: int,
        *,
        message_type: int = MessageType.INBOX,
        is_read: bool = False,
    ) -> Message:
        """Insert a message and roll its metadata into the owning thread."""
        thread = await self._session.get(Thread, thread_id)
        if thread is None:
            msg = f"Thread not found: {thread_id}"
            raise StorageError(msg)
        message = Message(
            thread_id=thread_id,
            address=address,
            body=body,
            date=date,
            type=int(message_type),
            is_read=is_read,
        )
        self._session.add(message)
        thread.message_count += 1
        if date >= thread.last_message_date:
            thread.last_message = body
            thread.last_message_date = date
        if int(message_type) == MessageType.INBOX and not is_read:
            thread.unread_count += 1
        await self._session.flush()
        return message

    async def get_message(self, message_id: int) -> Message | None:
        return await self._session.get(Message, message_id)

    async def set_message_type(self, message_id: int, message_type: int) -> Message:
        message = await self._session.get(Message, message_id)
        if message is None:
            msg = f"Message not found: {message_id}"
            raise StorageError(msg)
        message.type = int(message_type)
        await self._session.flush()
        return message

    async def recent_messages(self, limit: int) -> list[Message]:
        stmt = select(Message).order_by(Message.date.desc(), Message.id.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def thread_messages(self, thread_id: int, limit: int) -> list[Message]:
        stmt = (
            select(Message)
            .where(Message.thread_id == thread_id)
            .order_by(Message.date.desc(), Message.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def search_text(self, query: str, *, limit: int = 20) -> list[Message]:
        """Keyword search across message bodies and addresses.

        Independent of embeddings; returns messages most recent first.
        """
        pattern = f"%{query}%"
        stmt = (
            select(Message)
            .where(or_(Message.body.ilike(pattern), Message.address.ilike(pattern)))
            .order_by(Message.date.desc(), Message.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count_messages(self) -> int:
        result = await self._session.execute(select(func.count(Message.id)))
        return int(result.scalar_one())

    async def message_bodies_after(self, last_id: int, limit: int) -> list[tuple[int, str]]:
        """Keyset page of ``(id, body)`` pairs with ``id > last_id``."""
        stmt = (
            select(Message.id, Message.body)
            .where(Message.id > last_id)
            .order_by(Message.id)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    # ── Embeddings ───────────────────────────────────────────────

    async def count_stale(self, version: int) -> int:
        stmt = select(func.count(Message.id)).where(_stale_clause(version))
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def count_embedded(self, version: int) -> int:
        stmt = select(func.count(Message.id)).where(
            Message.embedding.is_not(None), Message.embedding_version == version
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def stale_messages(
        self, version: int, *, limit: int, offset: int = 0
    ) -> list[Message]:
        """Messages with no embedding or one from another model version."""
        stmt = (
            select(Message)
            .where(_stale_clause(version))
            .order_by(Message.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def embedded_messages(
        self, version: int, *, limit: int, offset: int = 0
    ) -> list[Message]:
        """Messages whose embedding matches *version*, most recent first."""
        stmt = (
            select(Message)
            .where(Message.embedding.is_not(None), Message.embedding_version == version)
            .order_by(Message.date.desc(), Message.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def save_embedding(
        self,
        message_id: int,
        vector: list[float],
        version: int,
        indexed_at: Any = None,
    ) -> Message:
        message = await self._session.get(Message, message_id)
        if message is None:
            msg = f"Message not found: {message_id}"
            raise StorageError(msg)
        message.embedding = list(vector)
        message.embedding_version = version
        message.indexed_at = indexed_at or _utcnow()
        await self._session.flush()
        return message
