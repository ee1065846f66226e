"""Search engine tests."""

import sqlite3

import numpy as np
import pytest

from mailmirror.events import TaskTracker
from mailmirror.search import SearchEngine
from mailmirror.search.engine import rank_by_cosine
from mailmirror.store import MessageStore

from conftest import USER, FakeEmbedder, make_metadata


@pytest.fixture
def engine(store: MessageStore, embedder: FakeEmbedder, tasks: TaskTracker) -> SearchEngine:
    return SearchEngine(store, embedder, tasks, fuzzy_threshold=0.1)


@pytest.fixture
def mailbox(store: MessageStore) -> MessageStore:
    store.upsert_many(
        USER,
        [
            make_metadata("inv-1", subject="Invoice #1042", internal_date=10),
            make_metadata("inv-2", subject="invoice", internal_date=20),
            make_metadata("typo", subject="Invoce overdue", internal_date=30),
            make_metadata("lunch", subject="Lunch on Friday", sender="bob@x.com"),
            make_metadata("paris", subject="Trip to Paris", internal_date=5),
            make_metadata("budget", subject="Budget review", internal_date=6),
        ],
    )
    return store


@pytest.mark.asyncio
async def test_fuzzy_orders_by_score_then_date(
    engine: SearchEngine,
    mailbox: MessageStore,
) -> None:
    response = await engine.fuzzy_search(USER, "invoice", page=1, limit=10)

    ids = [item.id for item in response.data]
    assert ids[0] == "inv-2"
    assert set(ids) == {"inv-1", "inv-2", "typo"}
    assert response.total_result == 3
    scores = [item.score for item in response.data]
    assert scores == sorted(scores, reverse=True)
    assert all(0.0 <= s <= 1.0 for s in scores)


@pytest.mark.asyncio
async def test_fuzzy_pagination(engine: SearchEngine, mailbox: MessageStore) -> None:
    first = await engine.fuzzy_search(USER, "invoice", page=1, limit=2)
    second = await engine.fuzzy_search(USER, "invoice", page=2, limit=2)

    assert len(first.data) == 2
    assert len(second.data) == 1
    assert first.total_result == second.total_result == 3
    assert second.page == 2
    assert {i.id for i in first.data}.isdisjoint(i.id for i in second.data)


@pytest.mark.asyncio
async def test_fuzzy_blank_query_is_empty(engine: SearchEngine, mailbox: MessageStore) -> None:
    response = await engine.fuzzy_search(USER, "   ")
    assert response.data == []
    assert response.total_result == 0


@pytest.mark.asyncio
async def test_fuzzy_is_scoped_to_user(engine: SearchEngine, mailbox: MessageStore) -> None:
    response = await engine.fuzzy_search("someone-else", "invoice")
    assert response.total_result == 0


@pytest.mark.asyncio
async def test_fuzzy_response_serializes_camel_case(
    engine: SearchEngine,
    mailbox: MessageStore,
) -> None:
    response = await engine.fuzzy_search(USER, "invoice", limit=1)
    payload = response.model_dump(by_alias=True)

    assert set(payload) == {"data", "page", "limit", "totalResult"}
    assert "internalDate" in payload["data"][0]
    assert "score" in payload["data"][0]


@pytest.mark.asyncio
async def test_semantic_ranks_by_cosine(
    engine: SearchEngine,
    mailbox: MessageStore,
    embedder: FakeEmbedder,
    tasks: TaskTracker,
) -> None:
    mailbox.update_embedding(USER, "paris", [0.0, 1.0, 0.0])
    mailbox.update_embedding(USER, "budget", [1.0, 0.0, 0.0])
    mailbox.update_embedding(USER, "lunch", [0.6, 0.8, 0.0])
    embedder.vectors["holiday"] = [0.0, 1.0, 0.0]

    results = await engine.semantic_search(USER, "holiday plans", limit=2)
    await tasks.drain()

    assert [r.id for r in results] == ["paris", "lunch"]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[1].similarity == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_semantic_empty_embedding_skips_store(
    engine: SearchEngine,
    store: MessageStore,
    embedder: FakeEmbedder,
    tasks: TaskTracker,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    embedder.failing.add("holiday")

    def forbidden(*args: object) -> None:
        raise AssertionError("store was queried")

    monkeypatch.setattr(store, "embedded_vectors", forbidden)
    monkeypatch.setattr(store, "record_query", forbidden)

    assert await engine.semantic_search(USER, "holiday plans") == []
    await tasks.drain()


@pytest.mark.asyncio
async def test_semantic_records_history(
    engine: SearchEngine,
    mailbox: MessageStore,
    tasks: TaskTracker,
) -> None:
    await engine.semantic_search(USER, "  travel   plans ")
    await engine.semantic_search(USER, "travel plans")
    await tasks.drain()

    history = mailbox.history_by_prefix(USER, "travel", limit=5)
    assert [(h.query_text, h.occurrence_count) for h in history] == [("travel plans", 2)]


@pytest.mark.asyncio
async def test_history_failure_does_not_fail_search(
    engine: SearchEngine,
    mailbox: MessageStore,
    tasks: TaskTracker,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def locked(*args: object) -> None:
        raise sqlite3.OperationalError("database is locked")

    mailbox.update_embedding(USER, "paris", [1.0, 0.0, 0.0])
    monkeypatch.setattr(mailbox, "record_query", locked)

    results = await engine.semantic_search(USER, "anything")
    await tasks.drain()

    assert [r.id for r in results] == ["paris"]


def test_rank_by_cosine_skips_mismatched_dimensions() -> None:
    query = np.array([1.0, 0.0], dtype=np.float32)
    vectors = [
        np.array([1.0, 0.0, 0.0], dtype=np.float32),
        np.array([0.0, 2.0], dtype=np.float32),
        np.array([3.0, 0.0], dtype=np.float32),
        np.array([0.0, 0.0], dtype=np.float32),
    ]

    ranked = rank_by_cosine(query, vectors, limit=10)

    assert [index for index, _ in ranked] == [2, 1, 3]
    assert ranked[0][1] == pytest.approx(0.0)
    assert ranked[1][1] == pytest.approx(1.0)
    assert ranked[2][1] == pytest.approx(1.0)


def test_rank_by_cosine_without_candidates() -> None:
    assert rank_by_cosine(np.ones(3, dtype=np.float32), [], limit=5) == []
