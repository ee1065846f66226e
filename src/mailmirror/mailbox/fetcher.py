"""Failure-isolating wrapper around the mailbox transport."""

import asyncio
from collections.abc import Sequence

import structlog

from mailmirror.errors import TransportError
from mailmirror.mailbox.transport import (
    METADATA_HEADERS,
    MailboxTransport,
    MessageMetadata,
    MessagePage,
)

logger = structlog.get_logger()


class MessageFetcher:
    """Lists cursor pages and fetches per-message metadata.

    The transport is synchronous (the Google client blocks), so every call is
    moved to a worker thread. Metadata fetches for one page run concurrently,
    bounded by a semaphore, and a failure on one id never affects the others.
    """

    def __init__(self, transport: MailboxTransport, concurrency: int = 10) -> None:
        """Initialize fetcher.

        Args:
            transport: Remote mailbox implementation.
            concurrency: Maximum metadata requests in flight per page.
        """
        self._transport = transport
        self._concurrency = concurrency

    async def list_page(
        self,
        user_id: str,
        page_token: str | None,
        max_results: int,
    ) -> MessagePage:
        """List one page of message ids.

        Args:
            user_id: Mailbox owner.
            page_token: Cursor from the previous page, None for the first.
            max_results: Page size.

        Returns:
            The page of ids and its continuation token.

        Raises:
            TransportError: If the transport call fails.
        """
        try:
            return await asyncio.to_thread(
                self._transport.list_message_ids, user_id, page_token, max_results
            )
        except Exception as e:
            logger.error(
                "message_list_failed",
                user_id=user_id,
                page_token=page_token,
                error=str(e),
            )
            raise TransportError(user_id, str(e)) from e

    async def fetch_metadata(
        self,
        user_id: str,
        ids: Sequence[str],
    ) -> list[MessageMetadata]:
        """Fetch metadata for each id independently.

        Args:
            user_id: Mailbox owner.
            ids: Message ids to fetch.

        Returns:
            Metadata for the ids that were fetched successfully, in input order.
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        async def fetch_one(message_id: str) -> MessageMetadata | None:
            async with semaphore:
                try:
                    return await asyncio.to_thread(
                        self._transport.get_message_metadata,
                        user_id,
                        message_id,
                        METADATA_HEADERS,
                    )
                except Exception as e:
                    logger.warning(
                        "message_fetch_failed",
                        user_id=user_id,
                        message_id=message_id,
                        error=str(e),
                    )
                    return None

        results = await asyncio.gather(*(fetch_one(message_id) for message_id in ids))
        fetched = [item for item in results if item is not None]
        if len(fetched) < len(ids):
            logger.info(
                "message_fetch_partial",
                user_id=user_id,
                requested=len(ids),
                fetched=len(fetched),
            )
        return fetched
