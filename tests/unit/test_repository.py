"""Tests for MessageRepository: threads, messages and embedding queries."""

from __future__ import annotations

import pytest

from vertext.core.errors import StorageError
from vertext.memory.models import MessageType, format_epoch_ms, type_label
from vertext.memory.repository import MessageRepository

BASE = 1_700_000_000_000


@pytest.fixture
def repo(db_session) -> MessageRepository:
    return MessageRepository(db_session)


# ── Threads ──────────────────────────────────────────────────────


class TestThreads:
    async def test_create_and_get(self, repo):
        thread = await repo.create_thread("+15550001", recipient_name="Alice")
        assert thread.id is not None
        fetched = await repo.get_thread(thread.id)
        assert fetched is thread
        assert fetched.display_name == "Alice"

    async def test_create_with_explicit_id(self, repo):
        thread = await repo.create_thread("+15550001", thread_id=42)
        assert thread.id == 42

    async def test_create_rejects_unknown_field(self, repo):
        with pytest.raises(StorageError, match="Unknown thread fields: colour"):
            await repo.create_thread("+1", colour="blue")

    async def test_list_orders_pinned_then_recent(self, repo):
        old = await repo.create_thread("+1", last_message_date=BASE)
        new = await repo.create_thread("+2", last_message_date=BASE + 10)
        pinned = await repo.create_thread("+3", last_message_date=BASE - 10, is_pinned=True)
        threads = await repo.list_threads(limit=10)
        assert [t.id for t in threads] == [pinned.id, new.id, old.id]

    async def test_list_excludes_archived_by_default(self, repo):
        await repo.create_thread("+1")
        archived = await repo.create_thread("+2", is_archived=True)
        assert archived.id not in [t.id for t in await repo.list_threads()]
        assert archived.id in [t.id for t in await repo.list_threads(include_archived=True)]

    async def test_list_limit(self, repo):
        for i in range(5):
            await repo.create_thread(f"+{i}")
        assert len(await repo.list_threads(limit=3)) == 3

    async def test_find_by_recipient_ignores_groups(self, repo):
        await repo.create_thread("+1", is_group=True, group_name="Family")
        assert await repo.find_thread_by_recipient("+1") is None
        single = await repo.create_thread("+1")
        assert (await repo.find_thread_by_recipient("+1")).id == single.id

    async def test_update_thread(self, repo):
        thread = await repo.create_thread("+1")
        updated = await repo.update_thread(thread.id, is_muted=True, recipient_name="Bo")
        assert updated.is_muted is True
        assert updated.display_name == "Bo"

    async def test_update_missing_thread_raises(self, repo):
        with pytest.raises(StorageError, match="Thread not found"):
            await repo.update_thread(999, is_muted=True)

    async def test_delete_cascades_messages(self, repo, db_session):
        thread = await repo.create_thread("+1")
        message = await repo.add_message(thread.id, "+1", "hi", BASE)
        await repo.delete_thread(thread.id)
        db_session.expunge_all()
        assert await repo.get_message(message.id) is None


# ── Messages ─────────────────────────────────────────────────────


class TestMessages:
    async def test_add_updates_thread_metadata(self, repo):
        thread = await repo.create_thread("+1")
        await repo.add_message(thread.id, "+1", "first", BASE)
        await repo.add_message(thread.id, "+1", "second", BASE + 1000)
        await repo.add_message(thread.id, "+1", "mine", BASE + 500, message_type=MessageType.SENT)
        assert thread.message_count == 3
        assert thread.last_message == "second"
        assert thread.last_message_date == BASE + 1000
        assert thread.unread_count == 2

    async def test_add_to_missing_thread_raises(self, repo):
        with pytest.raises(StorageError):
            await repo.add_message(123, "+1", "hi", BASE)

    async def test_thread_messages_newest_first(self, repo):
        thread = await repo.create_thread("+1")
        for i in range(4):
            await repo.add_message(thread.id, "+1", f"m{i}", BASE + i)
        messages = await repo.thread_messages(thread.id, 3)
        assert [m.body for m in messages] == ["m3", "m2", "m1"]

    async def test_recent_messages_across_threads(self, repo):
        a = await repo.create_thread("+1")
        b = await repo.create_thread("+2")
        await repo.add_message(a.id, "+1", "a", BASE)
        await repo.add_message(b.id, "+2", "b", BASE + 5)
        assert [m.body for m in await repo.recent_messages(10)] == ["b", "a"]

    async def test_set_message_type(self, repo):
        thread = await repo.create_thread("+1")
        message = await repo.add_message(thread.id, "+1", "x", BASE, message_type=MessageType.OUTBOX)
        await repo.set_message_type(message.id, MessageType.SENT)
        assert message.type == MessageType.SENT
        assert message.type_label == "sent"

    async def test_search_text_case_insensitive(self, repo):
        thread = await repo.create_thread("+1")
        await repo.add_message(thread.id, "+1", "Invoice attached", BASE)
        await repo.add_message(thread.id, "+1", "lunch?", BASE + 1)
        found = await repo.search_text("invoice")
        assert [m.body for m in found] == ["Invoice attached"]

    async def test_message_bodies_after(self, repo):
        thread = await repo.create_thread("+1")
        ids = [(await repo.add_message(thread.id, "+1", f"b{i}", BASE + i)).id for i in range(3)]
        page = await repo.message_bodies_after(ids[0], 10)
        assert page == [(ids[1], "b1"), (ids[2], "b2")]


# ── Embeddings ───────────────────────────────────────────────────


class TestEmbeddings:
    async def test_stale_and_embedded_by_version(self, repo):
        thread = await repo.create_thread("+1")
        fresh = await repo.add_message(thread.id, "+1", "fresh", BASE)
        old = await repo.add_message(thread.id, "+1", "old", BASE + 1)
        await repo.add_message(thread.id, "+1", "none", BASE + 2)
        await repo.save_embedding(fresh.id, [1.0, 0.0], 2)
        await repo.save_embedding(old.id, [0.0, 1.0], 1)

        assert await repo.count_stale(2) == 2
        assert await repo.count_embedded(2) == 1
        assert [m.body for m in await repo.stale_messages(2, limit=10)] == ["old", "none"]
        assert [m.body for m in await repo.embedded_messages(2, limit=10)] == ["fresh"]

    async def test_save_embedding_sets_timestamp(self, repo):
        thread = await repo.create_thread("+1")
        message = await repo.add_message(thread.id, "+1", "x", BASE)
        await repo.save_embedding(message.id, [0.5], 1)
        assert message.embedding == [0.5]
        assert message.embedding_version == 1
        assert message.indexed_at is not None
        assert message.has_embedding

    async def test_save_embedding_missing_message(self, repo):
        with pytest.raises(StorageError, match="Message not found"):
            await repo.save_embedding(404, [1.0], 1)


class TestLabels:
    @pytest.mark.parametrize(
        ("value", "label"),
        [(1, "received"), (2, "sent"), (3, "unknown"), (5, "unknown"), (99, "unknown")],
    )
    def test_type_label(self, value, label):
        assert type_label(value) == label

    def test_format_epoch_ms_shape(self):
        rendered = format_epoch_ms(BASE)
        assert len(rendered) == 19
        assert rendered[4] == "-" and rendered[10] == " " and rendered[13] == ":"
