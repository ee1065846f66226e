"""Event bus subsystem driving the ingest and enrichment pipeline."""
from mailmirror.events.bus import EventBus
from mailmirror.events.tasks import TaskTracker
from mailmirror.events.types import ContinueSyncEvent, IngestedEvent, PipelineEvent

__all__ = [
    "ContinueSyncEvent",
    "EventBus",
    "IngestedEvent",
    "PipelineEvent",
    "TaskTracker",
]
