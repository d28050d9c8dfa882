"""Builds live ingestion sets from their configuration."""

from concurrent.futures import Executor
from typing import Callable, List, Optional, Sequence

from azure.core.credentials import TokenCredential

from kusto_ingestor.clients.azure.blob import BlobObjectStore
from kusto_ingestor.clients.azure.datalake import DataLakeDirectoryLister
from kusto_ingestor.clients.kusto import KustoIngestionSink
from kusto_ingestor.ingestion.models import IngestionSet, IngestionSetConfig
from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)


async def build_ingestion_set(
    config: IngestionSetConfig,
    credential: TokenCredential,
    is_development: bool = False,
    managed_identity_client_id: Optional[str] = None,
    executor: Optional[Executor] = None,
) -> IngestionSet:
    """Bind one configuration to its Data Lake lister, Blob store and Kusto sink."""
    lister = DataLakeDirectoryLister(
        storage_account=config.blob_storage_account,
        container_name=config.blob_container_name,
        directory_path=config.blob_directory_path,
        credential=credential,
        executor=executor,
    )
    object_store = BlobObjectStore(
        storage_account=config.blob_storage_account,
        container_name=config.blob_container_name,
        credential=credential,
        executor=executor,
    )
    sink = KustoIngestionSink(
        config=config,
        credential=credential,
        is_development=is_development,
        managed_identity_client_id=managed_identity_client_id,
        executor=executor,
    )
    for client in (lister, object_store, sink):
        await client.load()

    return IngestionSet(
        config=config, lister=lister, object_store=object_store, sink=sink
    )


async def build_ingestion_sets(
    configs: Sequence[IngestionSetConfig],
    credential: TokenCredential,
    is_development: bool = False,
    managed_identity_client_id: Optional[str] = None,
    executor: Optional[Executor] = None,
    builder: Callable = build_ingestion_set,
) -> List[IngestionSet]:
    """Build every configured set, keeping configuration order.

    Each set is built independently: one that fails is logged and skipped so
    the others still start.
    """
    ingestion_sets = []
    for config in configs:
        try:
            ingestion_set = await builder(
                config,
                credential,
                is_development=is_development,
                managed_identity_client_id=managed_identity_client_id,
                executor=executor,
            )
        except Exception:
            logger.exception(
                f"Failed to build ingestion set {config.set_id}, skipping it"
            )
            continue
        ingestion_sets.append(ingestion_set)
        logger.info(f"Built ingestion set {config.set_id}")

    if configs and not ingestion_sets:
        logger.error("No ingestion set could be built, the worker will stay idle")
    return ingestion_sets
