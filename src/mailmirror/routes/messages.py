"""Read access to mirrored messages and summary write-back."""

import asyncio

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from mailmirror.errors import MessageNotFoundError
from mailmirror.events.bus import EventBus
from mailmirror.events.types import IngestedEvent
from mailmirror.routes.deps import UserId
from mailmirror.store.database import MessageStore
from mailmirror.store.schemas import MessageRecord

logger = structlog.get_logger()

router = APIRouter(prefix="/messages", tags=["messages"])


class SummaryUpdate(BaseModel):
    """Request body for a summary write-back."""

    summary: str = Field(..., max_length=20000)


async def _get_or_raise(store: MessageStore, user_id: str, message_id: str) -> MessageRecord:
    record = await asyncio.to_thread(store.get, user_id, message_id)
    if record is None:
        raise MessageNotFoundError(user_id, message_id)
    return record


def _not_found(e: MessageNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("", response_model=list[MessageRecord], response_model_by_alias=True)
async def list_messages(
    request: Request,
    user_id: UserId,
    limit: int = Query(default=20, ge=1, le=100, description="Messages to return"),
) -> list[MessageRecord]:
    """Newest mirrored messages.

    Args:
        request: FastAPI request (provides access to app state).
        user_id: Mailbox owner.
        limit: Maximum messages.

    Returns:
        Messages ordered by internal date, newest first.
    """
    store: MessageStore = request.app.state.store
    return await asyncio.to_thread(store.list_recent, user_id, limit)


@router.get("/{message_id}", response_model=MessageRecord, response_model_by_alias=True)
async def get_message(request: Request, message_id: str, user_id: UserId) -> MessageRecord:
    store: MessageStore = request.app.state.store
    try:
        return await _get_or_raise(store, user_id, message_id)
    except MessageNotFoundError as e:
        raise _not_found(e) from e


@router.put(
    "/{message_id}/summary",
    response_model=MessageRecord,
    response_model_by_alias=True,
)
async def set_summary(
    request: Request,
    message_id: str,
    body: SummaryUpdate,
    user_id: UserId,
) -> MessageRecord:
    """Store a summary and queue the message for re-embedding.

    The existing embedding is cleared so enrichment rebuilds it from the
    summary.

    Args:
        request: FastAPI request (provides access to app state).
        message_id: Message to update.
        body: New summary text.
        user_id: Mailbox owner.

    Returns:
        The updated message.

    Raises:
        HTTPException: 404 if the message is not mirrored.
    """
    store: MessageStore = request.app.state.store
    bus: EventBus = request.app.state.event_bus

    try:
        updated = await asyncio.to_thread(store.set_summary, user_id, message_id, body.summary)
        if not updated:
            raise MessageNotFoundError(user_id, message_id)
        record = await _get_or_raise(store, user_id, message_id)
    except MessageNotFoundError as e:
        raise _not_found(e) from e

    bus.publish(IngestedEvent(user_id=user_id, ids=[message_id]))
    logger.info("summary_updated", user_id=user_id, message_id=message_id)
    return record
