"""Unit tests for the Kusto ingestion sink."""

import asyncio
import io
import threading
from unittest.mock import MagicMock, patch

import pytest
from azure.kusto.data.data_format import DataFormat, IngestionMappingKind

from kusto_ingestor.clients.kusto import KustoIngestionSink
from kusto_ingestor.common.error_codes import ClientError, IngestionError
from kusto_ingestor.test_utils.fakes import make_config

INGEST_URI = "https://ingest-cluster.kusto.windows.net"


@pytest.fixture
def ingest_client():
    return MagicMock()


@pytest.fixture
def sink(ingest_client):
    return KustoIngestionSink(
        config=make_config("sales"), credential=MagicMock(), ingest_client=ingest_client
    )


class TestIngestionProperties:
    def test_json_with_mapping(self):
        properties = KustoIngestionSink.build_ingestion_properties(make_config("sales"))

        assert properties.database == "db"
        assert properties.table == "sales"
        assert properties.format == DataFormat.JSON
        assert properties.ingestion_mapping_reference == "sales_mapping"
        assert properties.ingestion_mapping_kind == IngestionMappingKind.JSON

    def test_without_mapping(self):
        config = make_config("sales", kustoMappingSchema=None)

        properties = KustoIngestionSink.build_ingestion_properties(config)

        assert properties.format == DataFormat.JSON
        assert not properties.ingestion_mapping_reference


class TestConnectionString:
    def test_development_requests_tokens_for_query_cluster(self):
        credential = MagicMock()
        credential.get_token.return_value.token = "dev-token"
        config = make_config(kustoCluster="https://cluster.kusto.windows.net/")
        sink = KustoIngestionSink(config, credential, is_development=True)

        with patch("kusto_ingestor.clients.kusto.KustoConnectionStringBuilder") as kcsb:
            sink.build_connection_string()

        args = kcsb.with_token_provider.call_args.args
        assert args[0] == INGEST_URI
        assert args[1]() == "dev-token"
        credential.get_token.assert_called_once_with(
            "https://cluster.kusto.windows.net/.default"
        )
        kcsb.with_aad_managed_service_identity_authentication.assert_not_called()

    def test_development_without_query_cluster_uses_shared_credential(self):
        credential = MagicMock()
        config = make_config(kustoCluster=None)
        sink = KustoIngestionSink(config, credential, is_development=True)

        with patch("kusto_ingestor.clients.kusto.KustoConnectionStringBuilder") as kcsb:
            sink.build_connection_string()

        kcsb.with_azure_token_credential.assert_called_once_with(INGEST_URI, credential)
        kcsb.with_token_provider.assert_not_called()

    def test_otherwise_uses_managed_identity(self):
        sink = KustoIngestionSink(
            make_config(), MagicMock(), managed_identity_client_id="mi-client-id"
        )

        with patch("kusto_ingestor.clients.kusto.KustoConnectionStringBuilder") as kcsb:
            sink.build_connection_string()

        kcsb.with_aad_managed_service_identity_authentication.assert_called_once_with(
            INGEST_URI, client_id="mi-client-id"
        )
        kcsb.with_azure_token_credential.assert_not_called()
        kcsb.with_token_provider.assert_not_called()


class TestKustoIngestionSink:
    @pytest.mark.asyncio
    async def test_ingest_queues_stream_and_closes_it(self, sink, ingest_client):
        queued = []
        ingest_client.ingest_from_stream.side_effect = (
            lambda descriptor, ingestion_properties: queued.append(
                (descriptor.stream.read(), ingestion_properties)
            )
        )
        stream = io.BytesIO(b'{"id": 1}')

        await sink.ingest(stream)

        assert queued == [(b'{"id": 1}', sink.ingestion_properties)]
        assert ingest_client.ingest_from_stream.call_args.args[0].stream.closed
        assert stream.closed

    @pytest.mark.asyncio
    async def test_timed_out_ingest_keeps_its_own_copy_of_the_bytes(
        self, sink, ingest_client
    ):
        release = threading.Event()
        queued = []

        def slow_ingest(descriptor, ingestion_properties):
            release.wait(timeout=2)
            queued.append(descriptor.stream.read())

        ingest_client.ingest_from_stream.side_effect = slow_ingest
        stream = io.BytesIO(b'{"id": 1}')

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(sink.ingest(stream), timeout=0.05)
        assert stream.closed

        release.set()
        for _ in range(200):
            if queued:
                break
            await asyncio.sleep(0.01)

        assert queued == [b'{"id": 1}']

    @pytest.mark.asyncio
    async def test_ingest_without_stream(self, sink, ingest_client):
        with pytest.raises(IngestionError) as exc_info:
            await sink.ingest(None)

        assert exc_info.value.error_code is IngestionError.INGESTION_STREAM_ERROR
        ingest_client.ingest_from_stream.assert_not_called()

    @pytest.mark.asyncio
    async def test_ingest_failure_propagates_and_closes_stream(
        self, sink, ingest_client
    ):
        ingest_client.ingest_from_stream.side_effect = RuntimeError("queue down")
        stream = io.BytesIO(b"{}")

        with pytest.raises(IngestionError) as exc_info:
            await sink.ingest(stream)

        assert exc_info.value.error_code is IngestionError.INGESTION_ERROR
        assert "queue down" in str(exc_info.value)
        assert stream.closed

    @pytest.mark.asyncio
    async def test_load_creates_queued_client(self):
        sink = KustoIngestionSink(make_config(), MagicMock())

        with patch("kusto_ingestor.clients.kusto.KustoConnectionStringBuilder"), patch(
            "kusto_ingestor.clients.kusto.QueuedIngestClient"
        ) as mock_client:
            await sink.load()
            await sink.load()

        mock_client.assert_called_once()

    @pytest.mark.asyncio
    async def test_load_failure_raises_client_error(self):
        sink = KustoIngestionSink(make_config(), MagicMock())

        with patch("kusto_ingestor.clients.kusto.KustoConnectionStringBuilder"), patch(
            "kusto_ingestor.clients.kusto.QueuedIngestClient",
            side_effect=ValueError("bad uri"),
        ):
            with pytest.raises(ClientError):
                await sink.load()

    @pytest.mark.asyncio
    async def test_close(self, sink, ingest_client):
        await sink.close()

        ingest_client.close.assert_called_once()
