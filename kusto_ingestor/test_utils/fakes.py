"""In-memory stand-ins for the storage and ingestion adapters, for tests."""

import asyncio
import io
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from kusto_ingestor.ingestion.interfaces import (
    DirectoryLister,
    IngestionSink,
    ObjectStore,
)
from kusto_ingestor.ingestion.models import (
    DirectoryEntry,
    IngestionSet,
    IngestionSetConfig,
)

START = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self, start: datetime = START):
        self._now = start
        self._monotonic = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds

    def ago(self, seconds: float) -> datetime:
        return self._now - timedelta(seconds=seconds)


class FakeLister(DirectoryLister):
    def __init__(
        self,
        entries: Optional[List[DirectoryEntry]] = None,
        missing: bool = False,
        error: Optional[Exception] = None,
        error_after: int = 0,
    ):
        self.entries = list(entries or [])
        self.missing = missing
        self.error = error
        self.error_after = error_after
        self.calls = 0
        self.yielded = 0

    async def list_entries(self):
        self.calls += 1
        if self.missing:
            return
        for index, entry in enumerate(list(self.entries)):
            if self.error is not None and index == self.error_after:
                raise self.error
            self.yielded += 1
            yield entry
        if self.error is not None and self.error_after >= len(self.entries):
            raise self.error


class FakeObjectStore(ObjectStore):
    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self.files = dict(files or {})
        self.deleted: List[str] = []
        self.read_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None

    async def open_read(self, name: str):
        if self.read_error is not None:
            raise self.read_error
        return io.BytesIO(self.files.get(name, b"{}"))

    async def delete(self, name: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.files.pop(name, None)
        self.deleted.append(name)


class FakeSink(IngestionSink):
    def __init__(self):
        self.ingested: List[bytes] = []
        self.error: Optional[Exception] = None
        self.delay: float = 0
        self.on_ingest: Optional[Callable[[], None]] = None
        self.closed = False

    async def ingest(self, stream) -> None:
        try:
            if self.on_ingest is not None:
                self.on_ingest()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            self.ingested.append(stream.read())
        finally:
            stream.close()

    async def close(self) -> None:
        self.closed = True


def make_config(name: str = "sales", /, **overrides) -> IngestionSetConfig:
    values = {
        "blobStorageAccount": "account",
        "blobContainerName": "container",
        "blobDirectoryPath": f"telemetry/{name}",
        "kustoCluster": "https://cluster.kusto.windows.net",
        "kustoClusterIngestion": "https://ingest-cluster.kusto.windows.net",
        "kustoDatabase": "db",
        "kustoTable": name,
        "kustoMappingSchema": f"{name}_mapping",
        "name": name,
    }
    values.update(overrides)
    return IngestionSetConfig.model_validate(values)


def make_set(
    name: str = "sales",
    entries: Optional[List[DirectoryEntry]] = None,
    lister: Optional[FakeLister] = None,
) -> IngestionSet:
    entries = entries or []
    return IngestionSet(
        config=make_config(name),
        lister=lister or FakeLister(entries),
        object_store=FakeObjectStore({e.name: e.name.encode() for e in entries}),
        sink=FakeSink(),
    )


def file_entry(name: str, created_at: datetime) -> DirectoryEntry:
    return DirectoryEntry(name=name, is_directory=False, created_at=created_at)


