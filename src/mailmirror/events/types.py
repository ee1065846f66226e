"""Typed pipeline events exchanged over the event bus."""
import uuid
from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

EventKind = Literal["ingested", "continue_sync"]


class _BaseEvent(BaseModel):
    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique event identifier (UUID)",
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Event timestamp (UTC)",
    )
    user_id: str = Field(description="Owner of the mailbox being mirrored")


class IngestedEvent(_BaseEvent):
    """Message ids newly stored (or needing re-embedding) for one user.

    Attributes:
        ids: Message ids awaiting an embedding.
        batch_number: 1 for fresh ingests, incremented on each re-queue.
    """

    kind: Literal["ingested"] = "ingested"
    ids: list[str]
    batch_number: int = Field(default=1, ge=1)


class ContinueSyncEvent(_BaseEvent):
    """Request to sync the next cursor page of a user's mailbox.

    Attributes:
        page_token: Opaque continuation token returned by the transport.
        depth: Number of continuation pages taken so far in this run.
    """

    kind: Literal["continue_sync"] = "continue_sync"
    page_token: str
    depth: int = Field(ge=1)


PipelineEvent = Annotated[
    IngestedEvent | ContinueSyncEvent,
    Field(discriminator="kind"),
]
