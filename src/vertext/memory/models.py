"""SQLAlchemy models for the message store.

Thread and Message mirror the platform's conversation records. The
embedding columns on Message (``embedding``, ``embedding_version``,
``indexed_at``) are owned by the embedding index.
"""

from __future__ import annotations

import enum
import time
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    """Current UTC time for timestamps."""
    return datetime.now(UTC)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class MessageType(enum.IntEnum):
    """Platform message box type."""

    INBOX = 1
    SENT = 2
    DRAFT = 3
    OUTBOX = 4
    FAILED = 5
    QUEUED = 6

    @property
    def label(self) -> str:
        if self is MessageType.INBOX:
            return "received"
        if self is MessageType.SENT:
            return "sent"
        return "unknown"


def type_label(value: int) -> str:
    """Render a raw message type as ``received``/``sent``/``unknown``."""
    try:
        return MessageType(value).label
    except ValueError:
        return "unknown"


class Base(DeclarativeBase):
    """Declarative base for all vertext models."""


class Thread(Base):
    """A conversation with one recipient or a group."""

    __tablename__ = "threads"
    __table_args__ = (
        Index("ix_threads_recipient", "recipient"),
        Index("ix_threads_last_message_date", "last_message_date"),
        Index("ix_threads_archived_pinned", "is_archived", "is_pinned"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient: Mapped[str] = mapped_column(String(64))
    recipient_name: Mapped[str | None] = mapped_column(
        String(200), nullable=True, default=None
    )
    last_message: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    last_message_date: Mapped[int] = mapped_column(BigInteger, default=0)
    unread_count: Mapped[int] = mapped_column(Integer, default=0)
    message_count: Mapped[int] = mapped_column(Integer, default=0)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    is_muted: Mapped[bool] = mapped_column(Boolean, default=False)
    is_group: Mapped[bool] = mapped_column(Boolean, default=False)
    group_name: Mapped[str | None] = mapped_column(String(200), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    messages: Mapped[list[Message]] = relationship(
        back_populates="thread",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def display_name(self) -> str:
        if self.is_group and self.group_name:
            return self.group_name
        return self.recipient_name or self.recipient


class Message(Base):
    """A single SMS/MMS message, optionally carrying its embedding."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_thread_date", "thread_id", "date"),
        Index("ix_messages_date", "date"),
        Index("ix_messages_embedding_version", "embedding_version"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(
        ForeignKey("threads.id", ondelete="CASCADE"), index=True
    )
    address: Mapped[str] = mapped_column(String(64))
    body: Mapped[str] = mapped_column(Text, default="")
    date: Mapped[int] = mapped_column(BigInteger, default=now_ms)
    type: Mapped[int] = mapped_column(Integer, default=int(MessageType.INBOX))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)

    embedding: Mapped[list[float] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True, default=None
    )
    embedding_version: Mapped[int | None] = mapped_column(
        Integer, nullable=True, default=None
    )
    indexed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )

    thread: Mapped[Thread] = relationship(back_populates="messages")

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    @property
    def type_label(self) -> str:
        return type_label(self.type)


def format_epoch_ms(value: int) -> str:
    """Render epoch milliseconds as local ``YYYY-MM-DD HH:MM:SS``."""
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")
