"""Read-side queries over the mirror: fuzzy, semantic and suggestions."""

import asyncio
import sqlite3
from collections.abc import Callable
from datetime import UTC, datetime

import numpy as np
import structlog

from mailmirror.embeddings import EmbeddingProvider
from mailmirror.events.tasks import TaskTracker
from mailmirror.search.schemas import (
    FuzzySearchResponse,
    ScoredMessage,
    SemanticMatch,
    Suggestion,
)
from mailmirror.search.suggestions import (
    history_score,
    merge_suggestions,
    sender_score,
    subject_keywords,
    subject_score,
)
from mailmirror.store.database import MessageStore

logger = structlog.get_logger()


def _normalize_query(query: str) -> str:
    return " ".join(query.split())


def rank_by_cosine(
    query_vector: np.ndarray,
    vectors: list[np.ndarray],
    limit: int,
) -> list[tuple[int, float]]:
    """Rank candidate vectors by cosine distance to a query vector.

    Candidates whose length differs from the query are skipped. A zero
    vector has distance 1 from everything.

    Args:
        query_vector: Query embedding.
        vectors: Candidate embeddings.
        limit: Maximum results.

    Returns:
        (candidate index, distance) pairs, nearest first.
    """
    usable = [i for i, v in enumerate(vectors) if v.shape == query_vector.shape]
    if not usable:
        return []

    matrix = np.stack([vectors[i] for i in usable]).astype(np.float64)
    query = query_vector.astype(np.float64)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    cosine = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
    distances = 1.0 - np.clip(cosine, -1.0, 1.0)

    order = np.argsort(distances, kind="stable")[:limit]
    return [(usable[i], float(distances[i])) for i in order]


class SearchEngine:
    """Fuzzy lexical, semantic vector and autocomplete queries for one store."""

    def __init__(
        self,
        store: MessageStore,
        provider: EmbeddingProvider,
        tasks: TaskTracker,
        fuzzy_threshold: float = 0.1,
        suggestion_limit: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize search engine.

        Args:
            store: Mirror store.
            provider: Embedding provider for query vectors.
            tasks: Tracker owning detached history writes.
            fuzzy_threshold: Minimum trigram similarity of a fuzzy match.
            suggestion_limit: Maximum suggestions per generator and overall.
            clock: Source of the current time, for history recency.
        """
        self._store = store
        self._provider = provider
        self._tasks = tasks
        self._fuzzy_threshold = fuzzy_threshold
        self._suggestion_limit = suggestion_limit
        self._clock = clock or (lambda: datetime.now(UTC))

    async def fuzzy_search(
        self,
        user_id: str,
        query: str,
        page: int = 1,
        limit: int = 20,
    ) -> FuzzySearchResponse:
        """Trigram search over subject and sender.

        Args:
            user_id: Mailbox owner.
            query: Search text; blank text yields an empty page.
            page: 1-based page number.
            limit: Page size.

        Returns:
            Page of matches ordered by score, then newest first.
        """
        term = _normalize_query(query)
        if not term:
            return FuzzySearchResponse(data=[], page=page, limit=limit, total_result=0)

        total, rows = await asyncio.to_thread(
            self._store.fuzzy_matches,
            user_id,
            term,
            self._fuzzy_threshold,
            limit,
            (page - 1) * limit,
        )
        data = [
            ScoredMessage(**record.model_dump(), score=round(score, 6))
            for record, score in rows
        ]
        logger.debug("fuzzy_search", user_id=user_id, total=total, returned=len(data))
        return FuzzySearchResponse(data=data, page=page, limit=limit, total_result=total)

    async def semantic_search(
        self,
        user_id: str,
        query: str,
        limit: int = 20,
    ) -> list[SemanticMatch]:
        """Nearest embedded messages to a query by cosine distance.

        Args:
            user_id: Mailbox owner.
            query: Natural-language query.
            limit: Maximum results.

        Returns:
            Matches ordered by similarity, highest first. Empty when the
            query cannot be embedded.
        """
        term = _normalize_query(query)
        if not term:
            return []

        vector = await self._provider.embed(term)
        if not vector:
            logger.warning("semantic_query_not_embedded", user_id=user_id)
            return []

        self._tasks.spawn(
            self._record_history(user_id, term),
            name=f"query_history:{user_id}",
        )

        candidates = await asyncio.to_thread(self._store.embedded_vectors, user_id)
        ranked = rank_by_cosine(
            np.asarray(vector, dtype=np.float32),
            [embedding for _, embedding in candidates],
            limit,
        )
        results = [
            SemanticMatch(
                **candidates[index][0].model_dump(),
                similarity=round(1.0 - distance, 6),
            )
            for index, distance in ranked
        ]
        logger.debug(
            "semantic_search",
            user_id=user_id,
            candidates=len(candidates),
            returned=len(results),
        )
        return results

    async def suggest(self, user_id: str, query: str) -> list[Suggestion]:
        """Autocomplete suggestions merged from senders, subjects and history.

        Args:
            user_id: Mailbox owner.
            query: Partial input.

        Returns:
            Up to suggestion_limit suggestions, highest score first, one per
            case-insensitive value.
        """
        term = _normalize_query(query)
        if not term:
            return []

        limit = self._suggestion_limit
        senders, subjects, history = await asyncio.gather(
            asyncio.to_thread(self._store.sender_frequencies, user_id, term, limit),
            asyncio.to_thread(self._store.subjects_containing, user_id, term),
            asyncio.to_thread(self._store.history_by_prefix, user_id, term, limit),
        )

        now = self._clock()
        sender_suggestions = [
            Suggestion(type="sender", value=sender, score=sender_score(freq))
            for sender, freq in senders
        ]
        subject_suggestions = [
            Suggestion(type="subject", value=keyword, score=subject_score(freq))
            for keyword, freq in subject_keywords(subjects, term, limit)
        ]
        history_suggestions = [
            Suggestion(
                type="query",
                value=entry.query_text,
                score=history_score(entry.occurrence_count, entry.last_used_at, now),
            )
            for entry in history
        ]

        return merge_suggestions(
            [sender_suggestions, subject_suggestions, history_suggestions],
            limit,
        )

    async def _record_history(self, user_id: str, query: str) -> None:
        try:
            await asyncio.to_thread(self._store.record_query, user_id, query, self._clock())
        except sqlite3.Error as e:
            logger.warning("query_history_write_failed", user_id=user_id, error=str(e))
