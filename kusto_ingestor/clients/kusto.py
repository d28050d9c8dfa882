"""
Ingestion sink backed by Azure Data Explorer (Kusto) queued ingestion.

Example:
    >>> sink = KustoIngestionSink(config, credential)
    >>> await sink.load()
    >>> await sink.ingest(stream)
"""

import io
from concurrent.futures import Executor
from typing import BinaryIO, Optional

from azure.core.credentials import TokenCredential
from azure.kusto.data import KustoConnectionStringBuilder
from azure.kusto.data.data_format import DataFormat, IngestionMappingKind
from azure.kusto.ingest import IngestionProperties, QueuedIngestClient, StreamDescriptor

from kusto_ingestor.clients import ClientInterface
from kusto_ingestor.common.error_codes import ClientError, IngestionError
from kusto_ingestor.common.utils import run_sync
from kusto_ingestor.ingestion.interfaces import IngestionSink
from kusto_ingestor.ingestion.models import IngestionSetConfig
from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)


class KustoIngestionSink(IngestionSink, ClientInterface):
    """
    Queues JSON streams for ingestion into one Kusto table.

    In development the shared token credential (developer tools) is used; in
    any other environment the ingest endpoint is reached with the
    user-assigned managed identity.

    Attributes:
        config (IngestionSetConfig): Destination database, table and mapping
        credential (TokenCredential): Credential used in development
        is_development (bool): Whether to authenticate with ``credential``
        managed_identity_client_id (Optional[str]): Managed identity used otherwise
        ingestion_properties (IngestionProperties): Properties sent with every ingest
    """

    def __init__(
        self,
        config: IngestionSetConfig,
        credential: TokenCredential,
        is_development: bool = False,
        managed_identity_client_id: Optional[str] = None,
        executor: Optional[Executor] = None,
        ingest_client: Optional[QueuedIngestClient] = None,
    ):
        self.config = config
        self.credential = credential
        self.is_development = is_development
        self.managed_identity_client_id = managed_identity_client_id
        self.executor = executor
        self.ingestion_properties = self.build_ingestion_properties(config)
        self._client = ingest_client

    @staticmethod
    def build_ingestion_properties(config: IngestionSetConfig) -> IngestionProperties:
        mapping = {}
        if config.kusto_mapping_schema:
            mapping = {
                "ingestion_mapping_reference": config.kusto_mapping_schema,
                "ingestion_mapping_kind": IngestionMappingKind.JSON,
            }
        return IngestionProperties(
            database=config.kusto_database,
            table=config.kusto_table,
            data_format=DataFormat.JSON,
            **mapping,
        )

    def build_connection_string(self) -> KustoConnectionStringBuilder:
        ingest_uri = self.config.kusto_cluster_ingestion
        if self.is_development:
            if self.config.kusto_cluster:
                return KustoConnectionStringBuilder.with_token_provider(
                    ingest_uri, self._cluster_token
                )
            return KustoConnectionStringBuilder.with_azure_token_credential(
                ingest_uri, self.credential
            )
        kcsb = KustoConnectionStringBuilder
        return kcsb.with_aad_managed_service_identity_authentication(
            ingest_uri, client_id=self.managed_identity_client_id
        )

    def _cluster_token(self) -> str:
        # Development tokens are issued for the query cluster audience
        scope = f"{self.config.kusto_cluster.rstrip('/')}/.default"
        return self.credential.get_token(scope).token

    async def load(self) -> None:
        """Create the queued ingest client. No request is sent."""
        if self._client is not None:
            return
        try:
            self._client = QueuedIngestClient(self.build_connection_string())
        except Exception as e:
            logger.error(
                f"Failed to create Kusto ingest client for "
                f"{self.config.kusto_cluster_ingestion}: {str(e)}"
            )
            raise ClientError(ClientError.CLIENT_CREATION_ERROR, str(e))

    async def close(self) -> None:
        if self._client is not None:
            await run_sync(self._client.close, self.executor)()
            self._client = None

    async def ingest(self, stream: BinaryIO) -> None:
        """Queue ``stream`` for ingestion, closing it afterwards.

        The executor thread works on its own copy of the bytes. If the caller
        stops waiting (a timeout), that copy stays readable and the queued
        ingestion may still complete, so delivery is at-least-once.

        Raises:
            IngestionError: If the stream is missing or the ingest call fails.
        """
        try:
            if stream is None:
                raise IngestionError(
                    IngestionError.INGESTION_STREAM_ERROR,
                    "Stream is null, ingestion cannot proceed.",
                )
            if self._client is None:
                await self.load()

            payload = io.BytesIO(stream.read())
            await run_sync(self._ingest_payload, self.executor)(self._client, payload)
            logger.info(
                f"Ingestion into {self.config.kusto_database}.{self.config.kusto_table} queued."
            )
        except IngestionError:
            raise
        except Exception as e:
            logger.error(
                f"Error occurred during ingestion into "
                f"{self.config.kusto_database}.{self.config.kusto_table}: {str(e)}"
            )
            raise IngestionError(IngestionError.INGESTION_ERROR, str(e))
        finally:
            if stream is not None:
                stream.close()

    def _ingest_payload(self, client: QueuedIngestClient, payload: BinaryIO) -> None:
        with payload:
            client.ingest_from_stream(
                StreamDescriptor(payload),
                ingestion_properties=self.ingestion_properties,
            )
