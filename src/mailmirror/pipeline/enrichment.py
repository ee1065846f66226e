"""Background embedding of newly mirrored messages."""

import asyncio
import sqlite3

import structlog

from mailmirror.embeddings import EmbeddingProvider, build_embedding_text
from mailmirror.events.bus import EventBus
from mailmirror.events.types import IngestedEvent
from mailmirror.store.database import MessageStore
from mailmirror.store.schemas import EmbeddingInput

logger = structlog.get_logger()


class EnrichmentScheduler:
    """Embeds ingested messages and re-queues the ones that failed.

    Each batch is one pass over its ids. Provider calls are serialised per
    scheduler with a fixed pause after each one, across batches and users.
    Ids that could not be embedded go back on the bus with the next batch
    number; batches past max_batches are dropped, which bounds the retries
    of a permanently failing id.
    """

    def __init__(
        self,
        store: MessageStore,
        provider: EmbeddingProvider,
        bus: EventBus,
        max_batches: int = 50,
        delay_seconds: float = 0.1,
        max_input_chars: int = 4000,
    ) -> None:
        """Initialize scheduler.

        Args:
            store: Mirror store.
            provider: Embedding provider.
            bus: Event bus used for re-queueing.
            max_batches: Last batch number that is still processed.
            delay_seconds: Pause after each provider call.
            max_input_chars: Truncation length of embedding input.
        """
        self._store = store
        self._provider = provider
        self._bus = bus
        self._max_batches = max_batches
        self._delay = delay_seconds
        self._max_input_chars = max_input_chars
        self._provider_lock = asyncio.Lock()

    def register(self) -> str:
        """Subscribe to ingest notifications on the bus.

        Returns:
            Subscriber id.
        """
        return self._bus.subscribe("ingested", self.handle_ingested)

    async def handle_ingested(self, event: IngestedEvent) -> None:
        """Event handler for ingest notifications."""
        await self.enrich(event.user_id, event.ids, event.batch_number)

    async def enrich(self, user_id: str, ids: list[str], batch_number: int) -> list[str]:
        """Embed one batch of messages.

        Args:
            user_id: Mailbox owner.
            ids: Message ids to embed.
            batch_number: Position of this batch in its re-queue chain.

        Returns:
            Ids that failed and were re-queued (empty when the chain ends).
        """
        if not ids or batch_number > self._max_batches:
            logger.info(
                "enrichment_finished",
                user_id=user_id,
                batch_number=batch_number,
                remaining=len(ids),
            )
            return []

        items = await asyncio.to_thread(self._store.pending_embedding_inputs, user_id, ids)
        failed: list[str] = []
        embedded = 0
        stale = 0

        for item in items:
            vector = await self._embed(user_id, item)
            if not vector:
                logger.warning("embedding_failed", user_id=user_id, message_id=item.id)
                failed.append(item.id)
                continue

            try:
                written = await asyncio.to_thread(
                    self._store.update_embedding,
                    user_id,
                    item.id,
                    vector,
                    item.summary,
                )
            except sqlite3.Error as e:
                logger.warning(
                    "embedding_write_failed",
                    user_id=user_id,
                    message_id=item.id,
                    error=str(e),
                )
                failed.append(item.id)
                continue

            if written:
                embedded += 1
            else:
                # summary changed mid-flight; its own ingested event re-embeds it
                logger.debug("embedding_stale_skipped", user_id=user_id, message_id=item.id)
                stale += 1

        logger.info(
            "enrichment_batch_done",
            user_id=user_id,
            batch_number=batch_number,
            requested=len(ids),
            pending=len(items),
            embedded=embedded,
            stale=stale,
            failed=len(failed),
        )

        if failed:
            self._bus.publish(
                IngestedEvent(user_id=user_id, ids=failed, batch_number=batch_number + 1)
            )
        return failed

    async def _embed(self, user_id: str, item: EmbeddingInput) -> list[float]:
        """One provider call, paced against every other call of this scheduler.

        The lock spans the call and the pause after it, so re-queued batches
        and concurrent ingest events all share one call rate.
        """
        text = build_embedding_text(item, self._max_input_chars)
        async with self._provider_lock:
            try:
                vector = await self._provider.embed(text)
            except Exception as e:
                logger.warning(
                    "embedding_provider_raised",
                    user_id=user_id,
                    message_id=item.id,
                    error=str(e),
                )
                vector = []
            if self._delay > 0:
                await asyncio.sleep(self._delay)
        return vector
