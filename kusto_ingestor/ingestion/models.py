"""Data model for ingestion sets and the entries discovered in their sources."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from kusto_ingestor.ingestion.interfaces import (
        DirectoryLister,
        IngestionSink,
        ObjectStore,
    )


class IngestionSetConfig(BaseModel):
    """Static description of one source directory and its destination table.

    Accepts both snake_case field names and the camelCase keys used by
    ``appsettings.json`` (``blobStorageAccount``, ``kustoMappingSchema``, ...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    blob_storage_account: str = Field(alias="blobStorageAccount", min_length=1)
    blob_container_name: str = Field(alias="blobContainerName", min_length=1)
    blob_directory_path: str = Field(alias="blobDirectoryPath", default="")
    kusto_cluster: Optional[str] = Field(alias="kustoCluster", default=None)
    kusto_cluster_ingestion: str = Field(alias="kustoClusterIngestion", min_length=1)
    kusto_database: str = Field(alias="kustoDatabase", min_length=1)
    kusto_table: str = Field(alias="kustoTable", min_length=1)
    kusto_mapping_schema: Optional[str] = Field(
        alias="kustoMappingSchema", default=None
    )
    name: Optional[str] = None

    @property
    def set_id(self) -> str:
        """Identifier used in logs and as the dedupe cache namespace."""
        if self.name:
            return self.name
        return (
            f"{self.blob_storage_account}/{self.blob_container_name}/"
            f"{self.blob_directory_path}->{self.kusto_database}.{self.kusto_table}"
        )


@dataclass(frozen=True)
class DirectoryEntry:
    name: str
    is_directory: bool
    created_at: datetime


@dataclass(frozen=True)
class IngestionSet:
    """A configured source bound to its lister, object store and sink."""

    config: IngestionSetConfig
    lister: "DirectoryLister"
    object_store: "ObjectStore"
    sink: "IngestionSink"

    @property
    def key(self) -> str:
        return self.config.set_id


class FileOutcome(str, Enum):
    """Terminal state of one file within one cycle."""

    SKIPPED_DIRECTORY = "skipped_directory"
    SKIPPED_CACHED = "skipped_cached"
    SKIPPED_ROLLOVER_PENDING = "skipped_rollover_pending"
    DELETED = "deleted"
    INGEST_FAILED = "ingest_failed"
    DELETE_FAILED = "delete_failed"

    @property
    def selected(self) -> bool:
        """True for outcomes where an ingest attempt was made."""
        return self in (
            FileOutcome.DELETED,
            FileOutcome.INGEST_FAILED,
            FileOutcome.DELETE_FAILED,
        )


@dataclass
class CycleReport:
    """Outcome counts for one ingestion set in one cycle."""

    set_id: str
    outcomes: Counter = field(default_factory=Counter)
    aborted: bool = False

    def record(self, outcome: FileOutcome) -> None:
        self.outcomes[outcome] += 1

    @property
    def processed(self) -> int:
        return sum(
            count for outcome, count in self.outcomes.items() if outcome.selected
        )

    def count(self, outcome: FileOutcome) -> int:
        return self.outcomes[outcome]
