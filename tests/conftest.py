"""Pytest configuration and fixtures."""

import sys
from collections.abc import Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from mailmirror.app import create_app
from mailmirror.config import Settings
from mailmirror.events import EventBus, TaskTracker
from mailmirror.mailbox import MessageFetcher, MessageMetadata, MessagePage
from mailmirror.store import MessageStore

USER = "user-1"


def make_metadata(message_id: str, **overrides: object) -> MessageMetadata:
    """Build transport metadata with predictable defaults."""
    fields: dict[str, object] = {
        "id": message_id,
        "thread_id": f"t-{message_id}",
        "subject": f"Subject {message_id}",
        "sender": "someone@example.com",
        "date": "Mon, 1 Jan 2024 00:00:00 +0000",
        "snippet": f"snippet of {message_id}",
        "internal_date": 1_700_000_000_000,
        "is_read": False,
    }
    fields.update(overrides)
    return MessageMetadata(**fields)


class FakeTransport:
    """In-memory mailbox with scripted pages.

    Pages are keyed by the token that requests them (None for the first).
    When ``endless`` is set every listing returns a fresh continuation token.
    """

    def __init__(self) -> None:
        self.pages: dict[str | None, MessagePage] = {}
        self.messages: dict[str, MessageMetadata] = {}
        self.failing_ids: set[str] = set()
        self.list_error: Exception | None = None
        self.endless = False
        self.list_calls: list[str | None] = []
        self.get_calls: list[str] = []

    def add_messages(self, *messages: MessageMetadata) -> None:
        for message in messages:
            self.messages[message.id] = message

    def list_message_ids(
        self,
        user_id: str,
        page_token: str | None,
        max_results: int,
    ) -> MessagePage:
        self.list_calls.append(page_token)
        if self.list_error is not None:
            raise self.list_error
        if self.endless:
            n = len(self.list_calls)
            return MessagePage(ids=[f"m{n}"], next_page_token=f"tok{n}")
        return self.pages.get(page_token, MessagePage())

    def get_message_metadata(
        self,
        user_id: str,
        message_id: str,
        header_names: tuple[str, ...],
    ) -> MessageMetadata:
        self.get_calls.append(message_id)
        if message_id in self.failing_ids:
            raise RuntimeError(f"boom {message_id}")
        if message_id in self.messages:
            return self.messages[message_id]
        return make_metadata(message_id)


class FakeEmbedder:
    """Deterministic three-dimensional embedder.

    The first key of ``vectors`` contained in the text selects its vector;
    any text containing a ``failing`` marker yields an empty vector.
    """

    def __init__(self) -> None:
        self.vectors: dict[str, list[float]] = {}
        self.failing: set[str] = set()
        self.default: list[float] = [1.0, 0.0, 0.0]
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.failing):
            return []
        for key, vector in self.vectors.items():
            if key in text:
                return vector
        return self.default


@pytest.fixture
def store() -> Iterator[MessageStore]:
    """Initialized in-memory store."""
    message_store = MessageStore(":memory:")
    message_store.initialize()
    yield message_store
    message_store.close()


@pytest.fixture
def tasks() -> TaskTracker:
    return TaskTracker()


@pytest.fixture
def bus(tasks: TaskTracker) -> EventBus:
    return EventBus(tasks)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fetcher(transport: FakeTransport) -> MessageFetcher:
    return MessageFetcher(transport, concurrency=4)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        host="127.0.0.1",
        port=8000,
        debug=True,
        database_path=":memory:",
        sync_page_delay_seconds=0.0,
        embedding_delay_seconds=0.0,
        embedding_dimensions=3,
        openai_api_key="",
        gmail_refresh_token="",
    )


@pytest.fixture
def client(
    settings: Settings,
    transport: FakeTransport,
    embedder: FakeEmbedder,
) -> Iterator[TestClient]:
    """Create test client with configured app and running lifespan."""
    app = create_app(settings, transport=transport, embedding_provider=embedder)
    with TestClient(app) as test_client:
        yield test_client
