"""Outgoing messages: persistence around the platform transport.

The transport itself (actual SMS delivery) is an external collaborator
reached through :class:`MessageTransport`.  :class:`LocalTransport` is
a development stand-in that accepts everything.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from vertext.core.errors import StorageError, TransportError
from vertext.memory.models import MessageType, now_ms

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vertext.embedding.index import EmbeddingIndex
    from vertext.memory.store import MessageStore

logger = logging.getLogger(__name__)


@runtime_checkable
class MessageTransport(Protocol):
    """Delivers a message; returns the transport's message id."""

    async def send_message(self, address: str, body: str) -> str: ...


class LocalTransport:
    """Accepts every message and records it.

    Addresses in ``fail_addresses`` are rejected with
    :class:`TransportError`, for exercising failure paths.
    """

    def __init__(self, *, fail_addresses: Iterable[str] = ()) -> None:
        self._fail = set(fail_addresses)
        self._ids = itertools.count(1)
        self.sent: list[tuple[str, str]] = []

    async def send_message(self, address: str, body: str) -> str:
        if address in self._fail:
            raise TransportError(address, "Simulated delivery failure")
        self.sent.append((address, body))
        return f"local-{next(self._ids)}"


@dataclass(slots=True)
class BatchSendResult:
    """Per-recipient outcome of :meth:`MessagingService.send_to_many`."""

    sent: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)


class MessagingService:
    """Records outgoing messages and hands them to the transport."""

    def __init__(
        self,
        store: MessageStore,
        transport: MessageTransport,
        *,
        index: EmbeddingIndex | None = None,
        embed_batch_size: int = 100,
    ) -> None:
        self._store = store
        self._transport = transport
        self._index = index
        self._embed_batch_size = embed_batch_size

    async def send_message(self, address: str, body: str) -> int:
        """Send *body* to *address*; return the stored message id.

        The message is stored as OUTBOX first, then marked SENT or
        FAILED.  A transport failure is re-raised as
        :class:`TransportError` after the FAILED mark is written.
        """
        thread = await self._store.get_or_create_thread(address)
        date = now_ms()
        message = await self._store.insert_message(
            thread.id,
            address,
            body,
            date,
            message_type=MessageType.OUTBOX,
            is_read=True,
        )

        try:
            transport_id = await self._transport.send_message(address, body)
        except Exception as e:
            await self._store.update_message_type(message.id, MessageType.FAILED)
            logger.warning("Send to %s failed: %s", address, e)
            if isinstance(e, TransportError):
                raise
            raise TransportError(address, str(e)) from e

        await self._store.update_message_type(message.id, MessageType.SENT)
        await self._store.update_thread(thread.id, last_message=body, last_message_date=date)
        logger.info("Sent message %d to %s (transport id %s)", message.id, address, transport_id)
        await self._schedule_embedding()
        return message.id

    async def _schedule_embedding(self) -> None:
        # Failures here never fail a send that the transport accepted.
        if self._index is None:
            return
        try:
            await self._index.enqueue_for_embedding(self._embed_batch_size)
        except Exception:
            logger.exception("Could not schedule embedding of sent messages")

    async def send_to_many(self, recipients: Iterable[str], body: str) -> BatchSendResult:
        """Send the same body to each recipient; failures never abort the batch."""
        result = BatchSendResult()
        for address in recipients:
            try:
                result.sent[address] = await self.send_message(address, body)
            except (TransportError, StorageError) as e:
                result.failed[address] = str(e)
        return result
