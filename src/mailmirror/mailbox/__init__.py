"""Remote mailbox access: transport contract and fetcher."""

from mailmirror.mailbox.fetcher import MessageFetcher
from mailmirror.mailbox.transport import (
    METADATA_HEADERS,
    MailboxTransport,
    MessageMetadata,
    MessagePage,
)

__all__ = [
    "METADATA_HEADERS",
    "MailboxTransport",
    "MessageFetcher",
    "MessageMetadata",
    "MessagePage",
]
