"""In-process event bus with kind-based dispatch to async handlers."""
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, Literal, overload

import structlog

from mailmirror.events.tasks import TaskTracker
from mailmirror.events.types import ContinueSyncEvent, EventKind, IngestedEvent, PipelineEvent

logger = structlog.get_logger()

IngestedHandler = Callable[[IngestedEvent], Awaitable[None]]
ContinueSyncHandler = Callable[[ContinueSyncEvent], Awaitable[None]]
Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    """Async event bus that runs each delivery as a detached task.

    Publishing never blocks on the handler: every subscriber of the event's
    kind gets its own task in the shared TaskTracker. A handler that wants to
    continue work later publishes a new event instead of recursing, so a
    chain of continuations never grows the call stack.

    Attributes:
        subscriber_count: Number of registered handlers across all kinds.
    """

    def __init__(self, tasks: TaskTracker) -> None:
        """Initialize event bus.

        Args:
            tasks: Tracker that owns the handler tasks.
        """
        self._tasks = tasks
        self._subscribers: dict[str, dict[str, Handler]] = {
            "ingested": {},
            "continue_sync": {},
        }
        self._published_count = 0

    @property
    def subscriber_count(self) -> int:
        """Total number of registered handlers across all kinds."""
        return sum(len(subs) for subs in self._subscribers.values())

    @property
    def published_events(self) -> int:
        """Total number of events published since startup."""
        return self._published_count

    @overload
    def subscribe(self, kind: Literal["ingested"], handler: IngestedHandler) -> str: ...

    @overload
    def subscribe(self, kind: Literal["continue_sync"], handler: ContinueSyncHandler) -> str: ...

    def subscribe(self, kind: EventKind, handler: Handler) -> str:
        """Register a handler for one event kind.

        Args:
            kind: Event kind to receive.
            handler: Coroutine function invoked with each event.

        Returns:
            Subscriber id usable with unsubscribe().

        Raises:
            ValueError: If the kind is unknown.
        """
        if kind not in self._subscribers:
            raise ValueError(f"Unknown event kind: {kind}")

        subscriber_id = str(uuid.uuid4())
        self._subscribers[kind][subscriber_id] = handler
        logger.debug("subscriber_added", subscriber_id=subscriber_id, kind=kind)
        return subscriber_id

    def unsubscribe(self, kind: EventKind, subscriber_id: str) -> None:
        """Remove a handler from the bus.

        Args:
            kind: Kind the handler was registered for.
            subscriber_id: ID returned by subscribe().
        """
        if kind in self._subscribers:
            self._subscribers[kind].pop(subscriber_id, None)
            logger.debug("subscriber_removed", subscriber_id=subscriber_id, kind=kind)

    def publish(self, event: PipelineEvent) -> int:
        """Dispatch an event to every handler of its kind.

        Must be called from within a running event loop.

        Args:
            event: Ingested or continue-sync event; its ``kind`` selects the handlers.

        Returns:
            Number of handlers the event was dispatched to.
        """
        self._published_count += 1
        handlers = list(self._subscribers.get(event.kind, {}).items())
        for subscriber_id, handler in handlers:
            self._tasks.spawn(
                handler(event),
                name=f"{event.kind}:{event.user_id}:{subscriber_id[:8]}",
            )

        logger.debug(
            "event_published",
            kind=event.kind,
            event_id=event.id,
            user_id=event.user_id,
            delivered_to=len(handlers),
        )
        return len(handlers)
