"""Worker module hosting the ingestion poller.

The worker owns everything the poll loop depends on but must not build
itself: the Azure credential, the thread pool used for SDK calls, the shared
dedupe cache and the ingestion sets.
"""

import asyncio
import signal
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from azure.core.credentials import TokenCredential

from kusto_ingestor.clients.azure.auth import AzureAuthProvider
from kusto_ingestor.config import IngestorSettings
from kusto_ingestor.constants import APPLICATION_NAME
from kusto_ingestor.ingestion.cache import DedupeCache
from kusto_ingestor.ingestion.factory import build_ingestion_sets
from kusto_ingestor.ingestion.models import IngestionSet
from kusto_ingestor.ingestion.poller import IngestionPoller
from kusto_ingestor.ingestion.rollover import RolloverPolicy
from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)


class IngestorWorker:
    """Builds the ingestion sets and runs the poller until stopped.

    Attributes:
        settings (IngestorSettings): Worker configuration.
        credential (Optional[TokenCredential]): Shared Azure credential.
        cache (DedupeCache): Process-wide dedupe cache.
        ingestion_sets (List[IngestionSet]): Sets built by :meth:`start`.
        poller (Optional[IngestionPoller]): Poll loop, created by :meth:`start`.
    """

    def __init__(
        self,
        settings: IngestorSettings,
        credential: Optional[TokenCredential] = None,
        auth_provider: Optional[AzureAuthProvider] = None,
        cache: Optional[DedupeCache] = None,
    ):
        self.settings = settings
        self.credential = credential
        self.auth_provider = auth_provider or AzureAuthProvider()
        self.cache = cache or DedupeCache()
        self.ingestion_sets: List[IngestionSet] = []
        self.poller: Optional[IngestionPoller] = None
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_workers, thread_name_prefix=APPLICATION_NAME
        )
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Create the credential and ingestion sets, then the poller."""
        if self.credential is None:
            client_id = self.settings.managed_identity_client_id
            self.credential = await self.auth_provider.create_credential(
                self.settings.auth_type, {"managed_identity_client_id": client_id}
            )

        self.ingestion_sets = await build_ingestion_sets(
            self.settings.ingestion_sets,
            self.credential,
            is_development=self.settings.is_development,
            managed_identity_client_id=self.settings.managed_identity_client_id,
            executor=self._executor,
        )
        self.poller = IngestionPoller(
            ingestion_sets=self.ingestion_sets,
            cache=self.cache,
            rollover_policy=RolloverPolicy(self.settings.rollover_delay),
            cache_ttl=self.settings.cache_ttl,
            max_files_per_run=self.settings.max_files_per_run,
            poll_interval=self.settings.poll_interval_seconds,
            call_timeout=self.settings.call_timeout,
            concurrent_sets=self.settings.concurrent_sets,
        )
        logger.info(
            f"Worker started with {len(self.ingestion_sets)} of "
            f"{len(self.settings.ingestion_sets)} configured ingestion set(s), "
            f"cache TTL {self.settings.cache_ttl}"
        )

    async def run(self) -> None:
        """Start if needed and poll until :meth:`stop` is called or a signal arrives."""
        try:
            if self.poller is None:
                await self.start()
            self._install_signal_handlers()
            await self.poller.run(self._stop_event)
        finally:
            await self.close()

    def stop(self) -> None:
        if not self._stop_event.is_set():
            logger.info("Stop requested, finishing the current file")
            self._stop_event.set()

    async def close(self) -> None:
        for ingestion_set in self.ingestion_sets:
            clients = (
                ingestion_set.lister,
                ingestion_set.object_store,
                ingestion_set.sink,
            )
            for client in clients:
                close = getattr(client, "close", None)
                if close is None:
                    continue
                try:
                    await close()
                except Exception as e:
                    logger.warning(
                        f"Error closing client of ingestion set "
                        f"{ingestion_set.key}: {str(e)}"
                    )
        self._executor.shutdown(wait=False)
        logger.info("Worker closed")

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                logger.debug(f"Could not install handler for {sig.name}")
