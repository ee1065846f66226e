"""Fuzzy, semantic and autocomplete search endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Query, Request

from mailmirror.routes.deps import UserId
from mailmirror.search.schemas import (
    FuzzySearchRequest,
    FuzzySearchResponse,
    SemanticMatch,
    SemanticSearchRequest,
    Suggestion,
)

if TYPE_CHECKING:
    from mailmirror.search.engine import SearchEngine

router = APIRouter(prefix="/search", tags=["search"])


@router.post(
    "/fuzzy",
    response_model=FuzzySearchResponse,
    response_model_by_alias=True,
    summary="Typo-tolerant search over subject and sender",
)
async def fuzzy_search(
    request: Request,
    body: FuzzySearchRequest,
    user_id: UserId,
) -> FuzzySearchResponse:
    """Trigram-similarity search with pagination.

    Args:
        request: FastAPI request (provides access to app state).
        body: Query text, page and page size.
        user_id: Mailbox owner.

    Returns:
        Page of matches with the total match count.
    """
    engine: SearchEngine = request.app.state.search_engine
    return await engine.fuzzy_search(user_id, body.query, page=body.page, limit=body.limit)


@router.post(
    "/semantic",
    response_model=list[SemanticMatch],
    response_model_by_alias=True,
    summary="Meaning-based search over embedded messages",
)
async def semantic_search(
    request: Request,
    body: SemanticSearchRequest,
    user_id: UserId,
) -> list[SemanticMatch]:
    engine: SearchEngine = request.app.state.search_engine
    return await engine.semantic_search(user_id, body.query, limit=body.limit)


@router.get(
    "/suggest",
    response_model=list[Suggestion],
    summary="Autocomplete from senders, subject keywords and past queries",
)
async def suggest(
    request: Request,
    user_id: UserId,
    query: str = Query(default="", max_length=200, description="Partial input"),
) -> list[Suggestion]:
    """Autocomplete suggestions for partial input.

    Inputs shorter than the configured minimum yield no suggestions.

    Args:
        request: FastAPI request (provides access to app state).
        user_id: Mailbox owner.
        query: Partial input.

    Returns:
        Ranked suggestions.
    """
    min_chars: int = request.app.state.settings.suggestion_min_chars
    if len(query.strip()) < min_chars:
        return []

    engine: SearchEngine = request.app.state.search_engine
    return await engine.suggest(user_id, query)
