"""Poll loop that drains every configured ingestion set on a fixed cadence.

Per cycle, each ingestion set is handled independently:

1. A fresh listing of the source directory is opened. A missing directory
   lists nothing.
2. Directories are skipped; files are handled in the order the lister yields
   them.
3. A file recently attempted (live dedupe cache entry) or not yet rolled over
   is skipped. Otherwise it is inserted into the cache *before* the attempt,
   read, handed to the sink and, on success, deleted from the source.
4. At most ``max_files_per_run`` files are attempted per set per cycle.
5. A listing failure aborts the set for this cycle; a failure on one file is
   logged and the next file is handled.

Because the cache entry is written before the attempt, failed attempts are
retried no sooner than the cache TTL.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence, Tuple

from kusto_ingestor.common.error_codes import ListingError
from kusto_ingestor.common.utils import with_timeout
from kusto_ingestor.constants import (
    CALL_TIMEOUT_SECONDS,
    MAX_FILES_PER_RUN,
    POLL_INTERVAL_SECONDS,
)
from kusto_ingestor.ingestion.cache import DedupeCache
from kusto_ingestor.ingestion.models import (
    CycleReport,
    DirectoryEntry,
    FileOutcome,
    IngestionSet,
)
from kusto_ingestor.ingestion.rollover import RolloverPolicy
from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IngestionPoller:
    """Drives the discover, filter, ingest, delete sequence for all sets.

    Attributes:
        ingestion_sets (Sequence[IngestionSet]): Sets handled each cycle, in order.
        cache (DedupeCache): Process-wide memory of attempted files, keyed by
            ``(set_id, file_name)``.
        rollover_policy (RolloverPolicy): Eligibility check on file age.
        cache_ttl (timedelta): Lifetime of a cache entry, and so the minimum
            delay before a failed file is retried.
        max_files_per_run (int): Cap on attempted files per set per cycle.
        poll_interval (float): Seconds to wait between cycles.
        call_timeout (Optional[float]): Bound on each adapter call in seconds,
            ``None`` or ``0`` for no bound.
        concurrent_sets (bool): Process sets as concurrent tasks instead of
            sequentially.
    """

    def __init__(
        self,
        ingestion_sets: Sequence[IngestionSet],
        cache: DedupeCache,
        rollover_policy: RolloverPolicy,
        cache_ttl: timedelta,
        max_files_per_run: int = MAX_FILES_PER_RUN,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        call_timeout: Optional[float] = CALL_TIMEOUT_SECONDS,
        concurrent_sets: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if max_files_per_run < 1:
            raise ValueError("max_files_per_run must be at least 1")
        self.ingestion_sets = list(ingestion_sets)
        self.cache = cache
        self.rollover_policy = rollover_policy
        self.cache_ttl = cache_ttl
        self.max_files_per_run = max_files_per_run
        self.poll_interval = poll_interval
        self.call_timeout = call_timeout
        self.concurrent_sets = concurrent_sets
        self._clock = clock

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run cycles until ``stop_event`` is set.

        The event is checked before each cycle and awaited during the wait
        between cycles, so a stop request interrupts the wait immediately.
        """
        logger.info(
            f"Starting ingestion poller for {len(self.ingestion_sets)} ingestion set(s)"
        )
        while not stop_event.is_set():
            try:
                await self.run_cycle(stop_event)
            except Exception:
                logger.exception("Unexpected error during ingestion cycle")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Ingestion poller stopped")

    async def run_cycle(
        self, stop_event: Optional[asyncio.Event] = None
    ) -> List[CycleReport]:
        """Make one pass over every ingestion set."""
        if self.concurrent_sets:
            reports = await asyncio.gather(
                *(self.process_set(s, stop_event) for s in self.ingestion_sets)
            )
            return list(reports)

        reports = []
        for ingestion_set in self.ingestion_sets:
            if stop_event is not None and stop_event.is_set():
                break
            reports.append(await self.process_set(ingestion_set, stop_event))
        return reports

    async def process_set(
        self, ingestion_set: IngestionSet, stop_event: Optional[asyncio.Event] = None
    ) -> CycleReport:
        """Handle one cycle of one ingestion set.

        Never raises: listing failures mark the report as aborted, per-file
        failures are recorded as outcomes.
        """
        report = CycleReport(set_id=ingestion_set.key)
        entries = ingestion_set.lister.list_entries()
        try:
            while report.processed < self.max_files_per_run:
                if stop_event is not None and stop_event.is_set():
                    break

                entry = await self._next_entry(ingestion_set, entries)
                if entry is None:
                    break

                try:
                    outcome = await self.process_entry(ingestion_set, entry)
                except Exception:
                    logger.exception(
                        f"Error during ingestion of {entry.name} "
                        f"for ingestion set {ingestion_set.key}"
                    )
                    outcome = FileOutcome.INGEST_FAILED
                report.record(outcome)
            else:
                logger.info(
                    f"Reached limit of {self.max_files_per_run} files for ingestion set "
                    f"{ingestion_set.key}, any remaining files are left for the next cycle"
                )
        except Exception:
            report.aborted = True
            logger.exception(
                f"Error occurred during enumeration of ingestion set {ingestion_set.key}"
            )
        finally:
            aclose = getattr(entries, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    logger.warning(
                        f"Error closing listing for ingestion set {ingestion_set.key}: {e}"
                    )

        if report.processed:
            logger.info(
                f"Ingestion set {ingestion_set.key}: processed {report.processed}, "
                f"deleted {report.count(FileOutcome.DELETED)}, "
                f"failed {report.count(FileOutcome.INGEST_FAILED)}"
            )
        return report

    async def process_entry(
        self, ingestion_set: IngestionSet, entry: DirectoryEntry
    ) -> FileOutcome:
        """Apply the skip rules to one entry and ingest it if it qualifies."""
        if entry.is_directory:
            return FileOutcome.SKIPPED_DIRECTORY

        key = self.cache_key(ingestion_set, entry)
        if self.cache.contains(key):
            logger.debug(f"Skipping {entry.name}: Already processed.")
            return FileOutcome.SKIPPED_CACHED

        now = self._clock()
        if not self.rollover_policy.is_rolled_over(entry.created_at, now):
            logger.info(
                f"Skipping {entry.name}: Not rolled over yet. "
                f"Created: {entry.created_at}, "
                f"Threshold: {self.rollover_policy.threshold(now)}"
            )
            return FileOutcome.SKIPPED_ROLLOVER_PENDING

        logger.info(f"Ingesting {entry.name} for ingestion set {ingestion_set.key}")
        self.cache.insert(key, self.cache_ttl)

        try:
            stream = await with_timeout(
                ingestion_set.object_store.open_read(entry.name), self.call_timeout
            )
            await with_timeout(ingestion_set.sink.ingest(stream), self.call_timeout)
        except Exception:
            logger.exception(
                f"Error during ingestion {entry.name} for ingestion set "
                f"{ingestion_set.key}, retrying after {self.cache_ttl}"
            )
            return FileOutcome.INGEST_FAILED

        try:
            await with_timeout(
                ingestion_set.object_store.delete(entry.name), self.call_timeout
            )
        except Exception:
            logger.exception(
                f"Ingested {entry.name} but failed to delete it from ingestion set "
                f"{ingestion_set.key}, it will be ingested again after {self.cache_ttl}"
            )
            return FileOutcome.DELETE_FAILED

        logger.info(f"Ingested and deleted {entry.name}")
        return FileOutcome.DELETED

    @staticmethod
    def cache_key(
        ingestion_set: IngestionSet, entry: DirectoryEntry
    ) -> Tuple[str, str]:
        return ingestion_set.key, entry.name

    async def _next_entry(self, ingestion_set, entries) -> Optional[DirectoryEntry]:
        try:
            return await with_timeout(entries.__anext__(), self.call_timeout)
        except StopAsyncIteration:
            return None
        except asyncio.TimeoutError:
            raise ListingError(
                ListingError.STORAGE_TIMEOUT_ERROR,
                f"listing {ingestion_set.key} exceeded {self.call_timeout}s",
            )
