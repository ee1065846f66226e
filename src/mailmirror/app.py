"""FastAPI application factory and lifespan management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from mailmirror.config import Settings
from mailmirror.embeddings import (
    DisabledEmbeddingProvider,
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from mailmirror.events import EventBus, TaskTracker
from mailmirror.mailbox import MailboxTransport, MessageFetcher
from mailmirror.mailbox.gmail import GmailTransport, refresh_token_credentials
from mailmirror.middleware.auth import APIKeyMiddleware, public_paths
from mailmirror.middleware.logging import RequestLoggingMiddleware
from mailmirror.pipeline import EnrichmentScheduler, SyncCoordinator
from mailmirror.routes import API_PREFIX, health, messages, search, sync
from mailmirror.search import SearchEngine
from mailmirror.store import MessageStore

logger = structlog.get_logger()


def _build_provider(settings: Settings) -> EmbeddingProvider:
    if not settings.openai_api_key:
        logger.warning("embedding_provider_disabled", reason="no_api_key")
        return DisabledEmbeddingProvider()
    return OpenAIEmbeddingProvider(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
        base_url=settings.openai_base_url,
    )


def _build_transport(settings: Settings) -> MailboxTransport | None:
    if not settings.gmail_refresh_token:
        logger.warning("mailbox_transport_disabled", reason="no_refresh_token")
        return None

    return GmailTransport(refresh_token_credentials(settings))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Opens the store, wires the event bus to the sync and enrichment stages
    and builds the search engine on startup. On shutdown, cancels any
    background pipeline work before closing the store.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info("api_startup", host=settings.host, port=settings.port)

    store = MessageStore(settings.database_path)
    store.initialize()

    tasks = TaskTracker()
    bus = EventBus(tasks)

    provider = app.state.embedding_provider or _build_provider(settings)
    transport = app.state.transport or _build_transport(settings)

    coordinator: SyncCoordinator | None = None
    if transport is not None:
        fetcher = MessageFetcher(transport, concurrency=settings.fetch_concurrency)
        coordinator = SyncCoordinator(
            store,
            fetcher,
            bus,
            page_size=settings.page_size,
            max_pages=settings.max_pages,
            page_delay_seconds=settings.sync_page_delay_seconds,
        )
        coordinator.register()

    scheduler = EnrichmentScheduler(
        store,
        provider,
        bus,
        max_batches=settings.max_batches,
        delay_seconds=settings.embedding_delay_seconds,
        max_input_chars=settings.embedding_max_input_chars,
    )
    scheduler.register()

    app.state.store = store
    app.state.tasks = tasks
    app.state.event_bus = bus
    app.state.sync_coordinator = coordinator
    app.state.enrichment_scheduler = scheduler
    app.state.search_engine = SearchEngine(
        store,
        provider,
        tasks,
        fuzzy_threshold=settings.fuzzy_threshold,
        suggestion_limit=settings.suggestion_limit,
    )
    logger.info(
        "pipeline_ready",
        subscribers=bus.subscriber_count,
        sync_enabled=coordinator is not None,
    )

    try:
        yield
    finally:
        await tasks.cancel_all()
        store.close()
        logger.info("api_shutdown")


def create_app(
    settings: Settings | None = None,
    transport: MailboxTransport | None = None,
    embedding_provider: EmbeddingProvider | None = None,
) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.
        transport: Mailbox transport. Built from settings if None; sync is
            unavailable when neither is configured.
        embedding_provider: Embedding provider. Built from settings if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Mail Mirror API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=f"{API_PREFIX}/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url=f"{API_PREFIX}/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.transport = transport
    app.state.embedding_provider = embedding_provider

    app.add_middleware(RequestLoggingMiddleware)
    if settings.key:
        app.add_middleware(
            APIKeyMiddleware,
            api_key=settings.key,
            exempt_paths=public_paths(settings.debug),
        )

    app.include_router(health.router, prefix=API_PREFIX)
    app.include_router(search.router, prefix=API_PREFIX)
    app.include_router(sync.router, prefix=API_PREFIX)
    app.include_router(messages.router, prefix=API_PREFIX)

    return app
