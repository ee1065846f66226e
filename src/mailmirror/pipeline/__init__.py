"""Ingest and enrichment stages of the mirror pipeline."""

from mailmirror.pipeline.enrichment import EnrichmentScheduler
from mailmirror.pipeline.sync import SyncCoordinator, SyncResult

__all__ = ["EnrichmentScheduler", "SyncCoordinator", "SyncResult"]
