"""Pydantic schemas for search requests and responses."""

from typing import Literal

from pydantic import BaseModel, Field

from mailmirror.store.schemas import CamelModel, MessageRecord

SuggestionType = Literal["sender", "subject", "query"]


class FuzzySearchRequest(BaseModel):
    """Body of a fuzzy search request."""

    query: str = Field(default="", max_length=500)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class SemanticSearchRequest(BaseModel):
    """Body of a semantic search request."""

    query: str = Field(default="", max_length=2000)
    limit: int = Field(default=20, ge=1, le=100)


class ScoredMessage(MessageRecord):
    """A fuzzy match with its trigram relevance score in [0, 1]."""

    score: float


class FuzzySearchResponse(CamelModel):
    """Paginated fuzzy search envelope.

    Attributes:
        data: Matches on the requested page.
        page: 1-based page number.
        limit: Page size.
        total_result: Matches across all pages.
    """

    data: list[ScoredMessage]
    page: int
    limit: int
    total_result: int


class SemanticMatch(MessageRecord):
    """A semantic match with its cosine similarity (1 - cosine distance)."""

    similarity: float


class Suggestion(BaseModel):
    """One autocomplete suggestion.

    Attributes:
        type: Generator that produced the suggestion.
        value: Text offered to the user.
        score: Ranking score in [0, 1].
    """

    type: SuggestionType
    value: str
    score: float
