"""SQLite-backed store for mirrored messages and query history."""

import sqlite3
import threading
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

import numpy as np
import structlog

from mailmirror.mailbox.transport import MessageMetadata
from mailmirror.store.schemas import EmbeddingInput, MessageRecord, QueryHistoryRecord
from mailmirror.trigram import fold, similarity

logger = structlog.get_logger()

# Keeps IN (...) lists under SQLite's bound-parameter limit
_ID_CHUNK = 500

_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    user_id TEXT NOT NULL,
    id TEXT NOT NULL,
    thread_id TEXT,
    subject TEXT NOT NULL DEFAULT '',
    sender TEXT NOT NULL DEFAULT '',
    snippet TEXT NOT NULL DEFAULT '',
    internal_date INTEGER NOT NULL,
    is_read INTEGER NOT NULL DEFAULT 0,
    summary TEXT NOT NULL DEFAULT '',
    embedding BLOB,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, id)
);
CREATE INDEX IF NOT EXISTS idx_messages_user_date
    ON messages (user_id, internal_date DESC);
CREATE TABLE IF NOT EXISTS query_history (
    user_id TEXT NOT NULL,
    query_text TEXT NOT NULL,
    occurrence_count INTEGER NOT NULL DEFAULT 1 CHECK (occurrence_count >= 1),
    last_used_at TEXT NOT NULL,
    PRIMARY KEY (user_id, query_text)
);
"""

_RECORD_COLUMNS = (
    "id, user_id, thread_id, subject, sender, snippet, internal_date, is_read, "
    "summary, embedding IS NOT NULL AS has_embedding, created_at, updated_at"
)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _chunks(ids: Sequence[str]) -> Iterable[Sequence[str]]:
    for start in range(0, len(ids), _ID_CHUNK):
        yield ids[start : start + _ID_CHUNK]


def _to_record(row: sqlite3.Row) -> MessageRecord:
    return MessageRecord(
        id=row["id"],
        user_id=row["user_id"],
        thread_id=row["thread_id"],
        subject=row["subject"],
        sender=row["sender"],
        snippet=row["snippet"],
        internal_date=row["internal_date"],
        is_read=bool(row["is_read"]),
        summary=row["summary"],
        has_embedding=bool(row["has_embedding"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class MessageStore:
    """Durable keyed table of mirrored messages plus search history.

    All writes are idempotent upserts keyed by (user_id, message id), so
    concurrent sync runs for different users need no coordination beyond
    the connection lock. The connection uses check_same_thread=False since
    callers reach it through asyncio.to_thread.
    """

    def __init__(self, path: str | Path = ":memory:") -> None:
        """Initialize store (call initialize() before use).

        Args:
            path: SQLite database file, or ":memory:".
        """
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Open the database, create tables and register match functions."""
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.create_function("fold", 1, fold, deterministic=True)
        self._conn.create_function("similarity", 2, similarity, deterministic=True)
        self._conn.executescript(_SCHEMA)
        self._conn.commit()
        logger.info("message_store_initialized", path=self._path)

    def ping(self) -> None:
        """Run a trivial query, raising sqlite3.Error if the store is unusable."""
        with self._lock:
            if self._conn is None:
                raise sqlite3.ProgrammingError("store is not initialized")
            self._conn.execute("SELECT 1").fetchone()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def existing_ids(self, user_id: str, ids: Sequence[str]) -> set[str]:
        """Return the subset of ids already mirrored for the user.

        Args:
            user_id: Mailbox owner.
            ids: Candidate message ids.

        Returns:
            Ids present in the store.
        """
        found: set[str] = set()
        with self._lock:
            assert self._conn is not None
            for chunk in _chunks(list(ids)):
                placeholders = ",".join("?" * len(chunk))
                rows = self._conn.execute(
                    f"SELECT id FROM messages WHERE user_id = ? AND id IN ({placeholders})",
                    (user_id, *chunk),
                ).fetchall()
                found.update(row["id"] for row in rows)
        return found

    def upsert_many(
        self,
        user_id: str,
        messages: Sequence[MessageMetadata],
    ) -> list[MessageRecord]:
        """Insert new messages or refresh mutable headers of known ones.

        internal_date, summary, embedding and created_at are never
        overwritten for an existing row.

        Args:
            user_id: Mailbox owner.
            messages: Metadata fetched from the transport.

        Returns:
            Stored records for the given messages, newest first.
        """
        if not messages:
            return []

        now = _now()
        with self._lock:
            assert self._conn is not None
            self._conn.executemany(
                """
                INSERT INTO messages (
                    user_id, id, thread_id, subject, sender, snippet,
                    internal_date, is_read, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id, id) DO UPDATE SET
                    thread_id = excluded.thread_id,
                    subject = excluded.subject,
                    sender = excluded.sender,
                    snippet = excluded.snippet,
                    is_read = excluded.is_read,
                    updated_at = excluded.updated_at
                """,
                [
                    (
                        user_id,
                        m.id,
                        m.thread_id,
                        m.subject,
                        m.sender,
                        m.snippet,
                        m.internal_date,
                        int(m.is_read),
                        now,
                        now,
                    )
                    for m in messages
                ],
            )
            self._conn.commit()

        logger.debug("messages_upserted", user_id=user_id, count=len(messages))
        return self.find_by_ids(user_id, [m.id for m in messages])

    def find_by_ids(self, user_id: str, ids: Sequence[str]) -> list[MessageRecord]:
        """Load records by id, newest first. Unknown ids are skipped."""
        records: list[MessageRecord] = []
        with self._lock:
            assert self._conn is not None
            for chunk in _chunks(list(ids)):
                placeholders = ",".join("?" * len(chunk))
                rows = self._conn.execute(
                    f"SELECT {_RECORD_COLUMNS} FROM messages "
                    f"WHERE user_id = ? AND id IN ({placeholders})",
                    (user_id, *chunk),
                ).fetchall()
                records.extend(_to_record(row) for row in rows)
        records.sort(key=lambda r: r.internal_date, reverse=True)
        return records

    def get(self, user_id: str, message_id: str) -> MessageRecord | None:
        """Load one record, or None if it is not mirrored."""
        with self._lock:
            assert self._conn is not None
            row = self._conn.execute(
                f"SELECT {_RECORD_COLUMNS} FROM messages WHERE user_id = ? AND id = ?",
                (user_id, message_id),
            ).fetchone()
        return _to_record(row) if row else None

    def list_recent(self, user_id: str, limit: int = 20) -> list[MessageRecord]:
        """Newest mirrored messages for a user by internal date."""
        with self._lock:
            assert self._conn is not None
            rows = self._conn.execute(
                f"SELECT {_RECORD_COLUMNS} FROM messages WHERE user_id = ? "
                "ORDER BY internal_date DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [_to_record(row) for row in rows]

    def count(self, user_id: str) -> int:
        """Number of mirrored messages for a user."""
        with self._lock:
            assert self._conn is not None
            return self._conn.execute(
                "SELECT COUNT(*) FROM messages WHERE user_id = ?", (user_id,)
            ).fetchone()[0]

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    def pending_embedding_inputs(
        self,
        user_id: str,
        ids: Sequence[str],
    ) -> list[EmbeddingInput]:
        """Load embedding-input fields for ids that still lack an embedding."""
        inputs: list[EmbeddingInput] = []
        with self._lock:
            assert self._conn is not None
            for chunk in _chunks(list(ids)):
                placeholders = ",".join("?" * len(chunk))
                rows = self._conn.execute(
                    "SELECT id, subject, sender, snippet, summary FROM messages "
                    f"WHERE user_id = ? AND embedding IS NULL AND id IN ({placeholders})",
                    (user_id, *chunk),
                ).fetchall()
                inputs.extend(EmbeddingInput(**dict(row)) for row in rows)
        order = {message_id: i for i, message_id in enumerate(ids)}
        inputs.sort(key=lambda item: order.get(item.id, len(order)))
        return inputs

    def update_embedding(
        self,
        user_id: str,
        message_id: str,
        vector: Sequence[float],
        embedded_summary: str | None = None,
    ) -> bool:
        """Store an embedding vector.

        Args:
            user_id: Mailbox owner.
            message_id: Message to update.
            vector: Embedding to store.
            embedded_summary: Summary the vector was computed from. When given,
                the write only lands if the row still has that summary and no
                embedding, so a vector of superseded text is discarded.

        Returns:
            True if a record was updated.
        """
        blob = np.asarray(vector, dtype=np.float32).tobytes()
        sql = "UPDATE messages SET embedding = ?, updated_at = ? WHERE user_id = ? AND id = ?"
        params: tuple[object, ...] = (blob, _now(), user_id, message_id)
        if embedded_summary is not None:
            sql += " AND summary = ? AND embedding IS NULL"
            params += (embedded_summary,)
        with self._lock:
            assert self._conn is not None
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
        return cursor.rowcount > 0

    def set_summary(self, user_id: str, message_id: str, summary: str) -> bool:
        """Replace a message summary and clear its now-stale embedding.

        Returns:
            True if a record was updated.
        """
        with self._lock:
            assert self._conn is not None
            cursor = self._conn.execute(
                "UPDATE messages SET summary = ?, embedding = NULL, updated_at = ? "
                "WHERE user_id = ? AND id = ?",
                (summary, _now(), user_id, message_id),
            )
            self._conn.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Search reads
    # ------------------------------------------------------------------

    def fuzzy_matches(
        self,
        user_id: str,
        query: str,
        threshold: float,
        limit: int,
        offset: int,
    ) -> tuple[int, list[tuple[MessageRecord, float]]]:
        """Trigram-match subject and sender against a query.

        Args:
            user_id: Mailbox owner.
            query: Search text (folded by the similarity function).
            threshold: Minimum similarity of subject or sender.
            limit: Page size.
            offset: Rows to skip.

        Returns:
            Tuple of (total matches, page of (record, score)) ordered by
            score then internal date, both descending.
        """
        scored_sql = (
            f"SELECT {_RECORD_COLUMNS}, "
            "max(similarity(subject, :query), similarity(sender, :query)) AS score "
            "FROM messages WHERE user_id = :user_id"
        )
        params = {
            "query": query,
            "user_id": user_id,
            "threshold": threshold,
            "limit": limit,
            "offset": offset,
        }
        with self._lock:
            assert self._conn is not None
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM ({scored_sql}) WHERE score >= :threshold",
                params,
            ).fetchone()[0]
            rows = self._conn.execute(
                f"SELECT * FROM ({scored_sql}) WHERE score >= :threshold "
                "ORDER BY score DESC, internal_date DESC "
                "LIMIT :limit OFFSET :offset",
                params,
            ).fetchall()
        return total, [(_to_record(row), float(row["score"])) for row in rows]

    def embedded_vectors(
        self,
        user_id: str,
    ) -> list[tuple[MessageRecord, np.ndarray]]:
        """Load every record of a user that has an embedding, with its vector."""
        with self._lock:
            assert self._conn is not None
            rows = self._conn.execute(
                f"SELECT {_RECORD_COLUMNS}, embedding FROM messages "
                "WHERE user_id = ? AND embedding IS NOT NULL",
                (user_id,),
            ).fetchall()
        return [
            (_to_record(row), np.frombuffer(row["embedding"], dtype=np.float32))
            for row in rows
        ]

    def sender_frequencies(
        self,
        user_id: str,
        prefix: str,
        limit: int,
    ) -> list[tuple[str, int]]:
        """Senders whose folded value starts with a prefix, most frequent first."""
        with self._lock:
            assert self._conn is not None
            rows = self._conn.execute(
                "SELECT sender, COUNT(*) AS freq FROM messages "
                "WHERE user_id = ? AND sender != '' AND fold(sender) LIKE ? ESCAPE '\\' "
                "GROUP BY sender ORDER BY freq DESC, sender LIMIT ?",
                (user_id, f"{_escape_like(fold(prefix))}%", limit),
            ).fetchall()
        return [(row["sender"], row["freq"]) for row in rows]

    def subjects_containing(self, user_id: str, needle: str) -> list[str]:
        """Subjects whose folded value contains a substring."""
        with self._lock:
            assert self._conn is not None
            rows = self._conn.execute(
                "SELECT subject FROM messages "
                "WHERE user_id = ? AND fold(subject) LIKE ? ESCAPE '\\'",
                (user_id, f"%{_escape_like(fold(needle))}%"),
            ).fetchall()
        return [row["subject"] for row in rows]

    # ------------------------------------------------------------------
    # Query history
    # ------------------------------------------------------------------

    def record_query(
        self,
        user_id: str,
        query_text: str,
        used_at: datetime | None = None,
    ) -> None:
        """Create a history entry or bump its count and timestamp."""
        stamp = (used_at or datetime.now(UTC)).isoformat()
        with self._lock:
            assert self._conn is not None
            self._conn.execute(
                """
                INSERT INTO query_history (user_id, query_text, occurrence_count, last_used_at)
                VALUES (?, ?, 1, ?)
                ON CONFLICT (user_id, query_text) DO UPDATE SET
                    occurrence_count = occurrence_count + 1,
                    last_used_at = excluded.last_used_at
                """,
                (user_id, query_text, stamp),
            )
            self._conn.commit()

    def history_by_prefix(
        self,
        user_id: str,
        prefix: str,
        limit: int,
    ) -> list[QueryHistoryRecord]:
        """Past queries starting with a prefix, by count then recency."""
        with self._lock:
            assert self._conn is not None
            rows = self._conn.execute(
                "SELECT user_id, query_text, occurrence_count, last_used_at "
                "FROM query_history "
                "WHERE user_id = ? AND fold(query_text) LIKE ? ESCAPE '\\' "
                "ORDER BY occurrence_count DESC, last_used_at DESC LIMIT ?",
                (user_id, f"{_escape_like(fold(prefix))}%", limit),
            ).fetchall()
        return [
            QueryHistoryRecord(
                user_id=row["user_id"],
                query_text=row["query_text"],
                occurrence_count=row["occurrence_count"],
                last_used_at=datetime.fromisoformat(row["last_used_at"]),
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
                logger.info("message_store_closed")
