"""Message store: models, repository, and the store contract."""

from vertext.memory.db import create_session_factory
from vertext.memory.models import (
    Base,
    Message,
    MessageType,
    Thread,
    format_epoch_ms,
    now_ms,
    type_label,
)
from vertext.memory.repository import MessageRepository
from vertext.memory.store import MessageStore, SqlMessageStore

__all__ = [
    "Base",
    "Message",
    "MessageRepository",
    "MessageStore",
    "MessageType",
    "SqlMessageStore",
    "Thread",
    "create_session_factory",
    "format_epoch_ms",
    "now_ms",
    "type_label",
]
