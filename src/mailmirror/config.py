"""Service configuration loaded from environment variables."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        host: Bind address for the API server.
        port: Port number for the API server.
        debug: Enable debug logging and API documentation.
        key: API key for authenticating requests (disabled when empty).
        database_path: SQLite file for the mirror, or ":memory:".
        page_size: Message ids requested per transport page.
        max_pages: Background continuation pages allowed per sync run.
        max_batches: Enrichment re-queue rounds allowed per ingested batch.
        sync_page_delay_seconds: Pause before each background sync page.
        fetch_concurrency: Concurrent metadata fetches per page.
        embedding_delay_seconds: Pause between embedding provider calls.
        embedding_max_input_chars: Truncation length for embedding input.
        embedding_model: Embedding model name sent to the provider.
        embedding_dimensions: Expected vector length; other lengths are rejected.
        openai_api_key: Key for the OpenAI-compatible embedding endpoint.
        openai_base_url: Base URL override (e.g. an OpenRouter endpoint).
        fuzzy_threshold: Minimum trigram similarity for fuzzy matches.
        suggestion_limit: Maximum suggestions returned.
        suggestion_min_chars: Shortest query the suggest endpoint answers.
        gmail_client_id: OAuth client id for the Gmail transport.
        gmail_client_secret: OAuth client secret for the Gmail transport.
        gmail_refresh_token: Refresh token for the Gmail transport.
    """

    model_config = SettingsConfigDict(
        env_prefix="MIRROR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    key: str = ""

    database_path: str = "mailmirror.db"

    page_size: int = Field(default=100, ge=1, le=500)
    max_pages: int = Field(default=10, ge=0)
    max_batches: int = Field(default=50, ge=1)
    sync_page_delay_seconds: float = 1.0
    fetch_concurrency: int = Field(default=10, ge=1)

    embedding_delay_seconds: float = 0.1
    embedding_max_input_chars: int = 4000
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    openai_api_key: str = ""
    openai_base_url: str | None = None

    fuzzy_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    suggestion_limit: int = 5
    suggestion_min_chars: int = 2

    gmail_client_id: str = ""
    gmail_client_secret: str = ""
    gmail_refresh_token: str = ""
