"""Persistence infrastructure."""

from qodecore.infrastructure.persistence.change_cache import ChangeCache
from qodecore.infrastructure.persistence.chat_serializer import (
    FORMAT_VERSION,
    ChatSerializer,
)
from qodecore.infrastructure.persistence.exceptions import (
    ChatHistoryParseError,
    PersistenceError,
)
from qodecore.infrastructure.persistence.history_store import HistoryStore

__all__ = [
    "FORMAT_VERSION",
    "ChangeCache",
    "ChatHistoryParseError",
    "ChatSerializer",
    "HistoryStore",
    "PersistenceError",
]
