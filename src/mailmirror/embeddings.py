"""Embedding provider contract and OpenAI-compatible implementation.

Providers never raise: an empty vector is the failure signal, so callers
can treat an outage the same as an unembeddable input.
"""

from typing import Protocol, runtime_checkable

import structlog
from openai import APIError, AsyncOpenAI, OpenAIError

from mailmirror.store.schemas import EmbeddingInput

logger = structlog.get_logger()


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into a fixed-length vector."""

    async def embed(self, text: str) -> list[float]:
        """Embed text, returning an empty list on any failure."""
        ...


def build_embedding_text(item: EmbeddingInput, max_chars: int) -> str:
    """Compose the text embedded for one message.

    The summary is preferred over the snippet when present.

    Args:
        item: Embedding-input fields of a message.
        max_chars: Truncation length.

    Returns:
        Subject, sender and content lines, truncated to max_chars.
    """
    content = item.summary or item.snippet or ""
    text = f"Subject: {item.subject}\nFrom: {item.sender}\nContent: {content}"
    return text[:max_chars]


class DisabledEmbeddingProvider:
    """Stand-in used when no embedding endpoint is configured.

    Semantic search returns nothing and enrichment re-queues until its batch
    bound is reached.
    """

    async def embed(self, text: str) -> list[float]:
        logger.debug("embedding_skipped", reason="no_provider")
        return []


class OpenAIEmbeddingProvider:
    """Embeddings from any OpenAI-compatible endpoint (OpenAI, OpenRouter)."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """Initialize provider.

        Args:
            api_key: API key for the endpoint.
            model: Embedding model name.
            dimensions: Requested vector length; other lengths count as failure.
            base_url: Optional endpoint override.
            client: Preconfigured client, mainly for tests.
        """
        self.model = model
        self.dimensions = dimensions
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

    async def embed(self, text: str) -> list[float]:
        if not text.strip():
            return []

        try:
            response = await self._client.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimensions,
            )
        except APIError as e:
            logger.warning("embedding_request_failed", model=self.model, error=str(e))
            return []
        except OpenAIError as e:
            logger.error("embedding_client_error", model=self.model, error=str(e))
            return []

        if not response.data:
            logger.warning("embedding_response_empty", model=self.model)
            return []

        vector = list(response.data[0].embedding)
        if len(vector) != self.dimensions:
            logger.error(
                "embedding_dimension_mismatch",
                model=self.model,
                expected=self.dimensions,
                actual=len(vector),
            )
            return []
        return vector
