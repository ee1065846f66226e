"""Persistence for mirrored messages and query history."""

from mailmirror.store.database import MessageStore
from mailmirror.store.schemas import EmbeddingInput, MessageRecord, QueryHistoryRecord

__all__ = [
    "EmbeddingInput",
    "MessageRecord",
    "MessageStore",
    "QueryHistoryRecord",
]
