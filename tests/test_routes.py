"""HTTP route tests."""

from fastapi.testclient import TestClient

from mailmirror.app import create_app
from mailmirror.config import Settings
from mailmirror.mailbox import MessagePage
from mailmirror.store import MessageStore

from conftest import USER, FakeEmbedder, FakeTransport, make_metadata

HEADERS = {"X-User-Id": USER}


def _store(client: TestClient) -> MessageStore:
    return client.app.state.store


def _seed(client: TestClient) -> None:
    _store(client).upsert_many(
        USER,
        [
            make_metadata("a", subject="Invoice 1042", sender="alice@x.com", internal_date=3),
            make_metadata("b", subject="Lunch", sender="alice@x.com", internal_date=2),
            make_metadata("c", subject="Trip plans", sender="bob@y.com", internal_date=1),
        ],
    )


def test_missing_user_header_is_rejected(client: TestClient) -> None:
    response = client.get("/api/v1/messages")
    assert response.status_code == 422


def test_sync_returns_initial_batch(client: TestClient, transport: FakeTransport) -> None:
    transport.pages[None] = MessagePage(ids=["a", "b", "c"])

    response = client.post("/api/v1/sync", headers=HEADERS)

    assert response.status_code == 200
    batch = response.json()["initialBatch"]
    assert sorted(item["id"] for item in batch) == ["a", "b", "c"]
    assert {"internalDate", "isRead", "hasEmbedding", "threadId"} <= set(batch[0])
    assert _store(client).count(USER) == 3


def test_sync_transport_failure_is_502(client: TestClient, transport: FakeTransport) -> None:
    transport.list_error = ConnectionError("unreachable")

    response = client.post("/api/v1/sync", headers=HEADERS)

    assert response.status_code == 502


def test_sync_without_transport_is_503(settings: Settings, embedder: FakeEmbedder) -> None:
    with TestClient(create_app(settings, embedding_provider=embedder)) as client:
        response = client.post("/api/v1/sync", headers=HEADERS)
    assert response.status_code == 503


def test_list_messages_newest_first(client: TestClient) -> None:
    _seed(client)

    response = client.get("/api/v1/messages", params={"limit": 2}, headers=HEADERS)

    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == ["a", "b"]


def test_list_messages_rejects_bad_limit(client: TestClient) -> None:
    response = client.get("/api/v1/messages", params={"limit": 0}, headers=HEADERS)
    assert response.status_code == 422


def test_get_message(client: TestClient) -> None:
    _seed(client)

    response = client.get("/api/v1/messages/a", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["subject"] == "Invoice 1042"

    missing = client.get("/api/v1/messages/zzz", headers=HEADERS)
    assert missing.status_code == 404

    other_user = client.get("/api/v1/messages/a", headers={"X-User-Id": "someone-else"})
    assert other_user.status_code == 404


def test_set_summary_clears_embedding(client: TestClient) -> None:
    _seed(client)
    _store(client).update_embedding(USER, "a", [1.0, 0.0, 0.0])

    response = client.put(
        "/api/v1/messages/a/summary",
        json={"summary": "Invoice for March"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == "Invoice for March"
    assert body["hasEmbedding"] is False


def test_set_summary_unknown_message(client: TestClient) -> None:
    response = client.put(
        "/api/v1/messages/zzz/summary",
        json={"summary": "x"},
        headers=HEADERS,
    )
    assert response.status_code == 404


def test_fuzzy_search(client: TestClient) -> None:
    _seed(client)

    response = client.post(
        "/api/v1/search/fuzzy",
        json={"query": "invoce", "page": 1, "limit": 10},
        headers=HEADERS,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["page"] == 1
    assert body["limit"] == 10
    assert body["totalResult"] == 1
    assert body["data"][0]["id"] == "a"
    assert 0.0 < body["data"][0]["score"] <= 1.0


def test_fuzzy_search_validates_page(client: TestClient) -> None:
    response = client.post(
        "/api/v1/search/fuzzy",
        json={"query": "invoice", "page": 0},
        headers=HEADERS,
    )
    assert response.status_code == 422


def test_semantic_search(client: TestClient, embedder: FakeEmbedder) -> None:
    _seed(client)
    _store(client).update_embedding(USER, "c", [0.0, 1.0, 0.0])
    _store(client).update_embedding(USER, "b", [1.0, 0.0, 0.0])
    embedder.vectors["vacation"] = [0.0, 1.0, 0.0]

    response = client.post(
        "/api/v1/search/semantic",
        json={"query": "vacation", "limit": 1},
        headers=HEADERS,
    )

    assert response.status_code == 200
    results = response.json()
    assert [r["id"] for r in results] == ["c"]
    assert results[0]["similarity"] == 1.0


def test_semantic_search_provider_failure(client: TestClient, embedder: FakeEmbedder) -> None:
    _seed(client)
    embedder.failing.add("vacation")

    response = client.post(
        "/api/v1/search/semantic",
        json={"query": "vacation"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json() == []


def test_suggest(client: TestClient) -> None:
    _seed(client)

    response = client.get("/api/v1/search/suggest", params={"query": "ali"}, headers=HEADERS)

    assert response.status_code == 200
    top = response.json()[0]
    assert (top["type"], top["value"]) == ("sender", "alice@x.com")
    assert 0.6 <= top["score"] <= 0.95


def test_suggest_ignores_short_queries(client: TestClient) -> None:
    _seed(client)

    response = client.get("/api/v1/search/suggest", params={"query": "a"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == []
