"""Search subsystem: trigram, vector and suggestion queries over the mirror."""

from mailmirror.search.engine import SearchEngine
from mailmirror.search.schemas import (
    FuzzySearchRequest,
    FuzzySearchResponse,
    ScoredMessage,
    SemanticMatch,
    SemanticSearchRequest,
    Suggestion,
)

__all__ = [
    "FuzzySearchRequest",
    "FuzzySearchResponse",
    "ScoredMessage",
    "SearchEngine",
    "SemanticMatch",
    "SemanticSearchRequest",
    "Suggestion",
]
