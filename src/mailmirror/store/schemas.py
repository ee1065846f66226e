"""Pydantic models for records held in the mirror store."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageRecord(CamelModel):
    """A mirrored message as held in the store.

    The embedding vector itself never leaves the store through this model;
    ``has_embedding`` reports whether enrichment has completed.

    Attributes:
        id: Remote message id, unique per user.
        user_id: Owner of the mailbox.
        thread_id: Remote thread id, if any.
        subject: Subject header.
        sender: From header.
        snippet: Short body preview supplied by the transport.
        internal_date: Remote timestamp in epoch milliseconds.
        is_read: Whether the message was read when last synced.
        summary: Summary text written downstream (empty by default).
        has_embedding: Whether an embedding has been stored.
        created_at: When the record was first mirrored.
        updated_at: When the record was last written.
    """

    id: str
    user_id: str
    thread_id: str | None = None
    subject: str = ""
    sender: str = ""
    snippet: str = ""
    internal_date: int
    is_read: bool = False
    summary: str = ""
    has_embedding: bool = False
    created_at: datetime
    updated_at: datetime


class EmbeddingInput(BaseModel):
    """Fields needed to build embedding text for one message."""

    id: str
    subject: str = ""
    sender: str = ""
    snippet: str = ""
    summary: str = ""


class QueryHistoryRecord(CamelModel):
    """A past semantic search query for one user."""

    user_id: str
    query_text: str
    occurrence_count: int = Field(ge=1)
    last_used_at: datetime
