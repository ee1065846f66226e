"""Mailbox sync trigger endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, HTTPException, Request, status

from mailmirror.errors import TransportError
from mailmirror.pipeline.sync import SyncResult
from mailmirror.routes.deps import UserId

if TYPE_CHECKING:
    from mailmirror.pipeline.sync import SyncCoordinator

logger = structlog.get_logger()

router = APIRouter(tags=["sync"])


@router.post(
    "/sync",
    response_model=SyncResult,
    response_model_by_alias=True,
    summary="Mirror the newest page now and continue in the background",
)
async def sync(request: Request, user_id: UserId) -> SyncResult:
    """Start an incremental sync for the caller's mailbox.

    Older pages are fetched by background continuation after the response.

    Args:
        request: FastAPI request (provides access to app state).
        user_id: Mailbox owner.

    Returns:
        Records newly stored from the first page.

    Raises:
        HTTPException: 503 when no transport is configured, 502 when the
            first page cannot be listed.
    """
    coordinator: SyncCoordinator | None = request.app.state.sync_coordinator
    if coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Mailbox transport is not configured",
        )

    try:
        return await coordinator.sync_incremental(user_id)
    except TransportError as e:
        logger.warning("sync_request_failed", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Mailbox provider request failed",
        ) from e
