"""Polling ingestion core: discovery, rollover, dedupe, ingest-then-delete."""

from kusto_ingestor.ingestion.cache import DedupeCache
from kusto_ingestor.ingestion.models import (
    CycleReport,
    DirectoryEntry,
    FileOutcome,
    IngestionSet,
    IngestionSetConfig,
)
from kusto_ingestor.ingestion.poller import IngestionPoller
from kusto_ingestor.ingestion.rollover import RolloverPolicy

__all__ = [
    "CycleReport",
    "DedupeCache",
    "DirectoryEntry",
    "FileOutcome",
    "IngestionPoller",
    "IngestionSet",
    "IngestionSetConfig",
    "RolloverPolicy",
]
