"""Narrow contract the mirror needs from a remote mailbox."""
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

METADATA_HEADERS: tuple[str, ...] = ("Subject", "From", "Date")


class MessagePage(BaseModel):
    """One cursor page of message ids.

    Attributes:
        ids: Message ids in the order the transport returned them.
        next_page_token: Opaque cursor for the following page, if any.
    """

    ids: list[str] = Field(default_factory=list)
    next_page_token: str | None = None


class MessageMetadata(BaseModel):
    """Header-level metadata for one remote message."""

    id: str
    thread_id: str | None = None
    subject: str = ""
    sender: str = ""
    date: str = ""
    snippet: str = ""
    internal_date: int = 0
    is_read: bool = False


@runtime_checkable
class MailboxTransport(Protocol):
    """Remote mailbox operations consumed by the sync pipeline.

    Implementations are synchronous; callers move them off the event loop.
    """

    def list_message_ids(
        self,
        user_id: str,
        page_token: str | None,
        max_results: int,
    ) -> MessagePage:
        """List one page of message ids, newest first."""
        ...

    def get_message_metadata(
        self,
        user_id: str,
        message_id: str,
        header_names: tuple[str, ...],
    ) -> MessageMetadata:
        """Fetch selected headers and bookkeeping fields of one message."""
        ...
