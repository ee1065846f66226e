"""Incremental, cursor-paginated mailbox ingestion."""

import asyncio

import structlog

from mailmirror.errors import TransportError
from mailmirror.events.bus import EventBus
from mailmirror.events.types import ContinueSyncEvent, IngestedEvent
from mailmirror.mailbox.fetcher import MessageFetcher
from mailmirror.store.database import MessageStore
from mailmirror.store.schemas import CamelModel, MessageRecord

logger = structlog.get_logger()


class SyncResult(CamelModel):
    """Synchronous outcome of a sync request.

    Attributes:
        initial_batch: Records newly mirrored from the first page.
    """

    initial_batch: list[MessageRecord]


class SyncCoordinator:
    """Mirrors a mailbox page by page without refetching known messages.

    The first page is processed on the caller's request; each following page
    is requested through a ContinueSyncEvent carrying its depth, and the run
    ends once the cursor is exhausted or max_pages continuations were taken.
    """

    def __init__(
        self,
        store: MessageStore,
        fetcher: MessageFetcher,
        bus: EventBus,
        page_size: int = 100,
        max_pages: int = 10,
        page_delay_seconds: float = 0.0,
    ) -> None:
        """Initialize coordinator.

        Args:
            store: Mirror store.
            fetcher: Transport wrapper.
            bus: Event bus for continuation and ingest notifications.
            page_size: Ids requested per page.
            max_pages: Continuations allowed per run.
            page_delay_seconds: Pause before each background page.
        """
        self._store = store
        self._fetcher = fetcher
        self._bus = bus
        self._page_size = page_size
        self._max_pages = max_pages
        self._page_delay = page_delay_seconds

    def register(self) -> str:
        """Subscribe continuation handling on the bus.

        Returns:
            Subscriber id.
        """
        return self._bus.subscribe("continue_sync", self.handle_continue)

    async def sync_incremental(self, user_id: str) -> SyncResult:
        """Mirror the newest page now and continue older pages in the background.

        Args:
            user_id: Mailbox owner.

        Returns:
            The records newly stored from the first page.

        Raises:
            TransportError: If the first page cannot be listed.
        """
        logger.info("sync_started", user_id=user_id)
        records = await self._sync_page(user_id, page_token=None, depth=0)
        return SyncResult(initial_batch=records)

    async def continue_sync(
        self,
        user_id: str,
        page_token: str,
        depth: int,
    ) -> list[MessageRecord]:
        """Mirror one background page.

        Transport failures end the run quietly; nobody is waiting on it.

        Args:
            user_id: Mailbox owner.
            page_token: Cursor for the page.
            depth: Continuation number of this page within the run.

        Returns:
            Records newly stored from the page.
        """
        if depth > self._max_pages:
            logger.info("sync_run_finished", user_id=user_id, pages=depth)
            return []

        if self._page_delay > 0:
            await asyncio.sleep(self._page_delay)

        logger.debug("sync_background_page", user_id=user_id, depth=depth)
        try:
            return await self._sync_page(user_id, page_token=page_token, depth=depth)
        except TransportError:
            logger.warning("sync_run_aborted", user_id=user_id, depth=depth)
            return []

    async def handle_continue(self, event: ContinueSyncEvent) -> None:
        """Event handler for continuation requests."""
        await self.continue_sync(event.user_id, event.page_token, event.depth)

    async def _sync_page(
        self,
        user_id: str,
        page_token: str | None,
        depth: int,
    ) -> list[MessageRecord]:
        page = await self._fetcher.list_page(user_id, page_token, self._page_size)

        page_ids = list(dict.fromkeys(page.ids))
        known = await asyncio.to_thread(self._store.existing_ids, user_id, page_ids)
        new_ids = [message_id for message_id in page_ids if message_id not in known]

        records: list[MessageRecord] = []
        if new_ids:
            fetched = await self._fetcher.fetch_metadata(user_id, new_ids)
            if fetched:
                records = await asyncio.to_thread(self._store.upsert_many, user_id, fetched)

        logger.info(
            "sync_page_processed",
            user_id=user_id,
            depth=depth,
            listed=len(page_ids),
            new=len(new_ids),
            stored=len(records),
        )

        if records:
            self._bus.publish(
                IngestedEvent(user_id=user_id, ids=[record.id for record in records])
            )

        if page.next_page_token and depth < self._max_pages:
            self._bus.publish(
                ContinueSyncEvent(
                    user_id=user_id,
                    page_token=page.next_page_token,
                    depth=depth + 1,
                )
            )
        else:
            logger.info(
                "sync_run_finished",
                user_id=user_id,
                pages=depth + 1,
                cursor_exhausted=page.next_page_token is None,
            )

        return records
