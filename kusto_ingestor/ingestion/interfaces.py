"""Capability contracts the poll loop depends on.

Any storage or ingestion backend implementing these is interchangeable; the
Azure implementations live in :mod:`kusto_ingestor.clients`.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, BinaryIO

from kusto_ingestor.ingestion.models import DirectoryEntry


class DirectoryLister(ABC):
    """Enumerates the entries of one configured directory."""

    @abstractmethod
    def list_entries(self) -> AsyncIterator[DirectoryEntry]:
        """Return a lazy, finite, non-restartable iterator over the directory.

        A missing directory yields nothing. Any other failure is raised to the
        caller.
        """


class ObjectStore(ABC):
    """Read and delete access to objects in one container."""

    @abstractmethod
    async def open_read(self, name: str) -> BinaryIO:
        """Open a readable byte stream for ``name``."""

    @abstractmethod
    async def delete(self, name: str) -> None:
        """Delete ``name``. An object that is already gone is not an error."""


class IngestionSink(ABC):
    """Accepts byte streams for durable delivery into one destination."""

    @abstractmethod
    async def ingest(self, stream: BinaryIO) -> None:
        """Consume ``stream`` and hand it to the sink.

        The stream is closed whatever the outcome. Returning normally means
        the sink accepted responsibility for delivery; failures raise.
        """

    async def close(self) -> None:
        """Release client resources held by the sink."""
