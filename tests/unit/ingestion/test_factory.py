from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kusto_ingestor.ingestion.factory import build_ingestion_set, build_ingestion_sets
from kusto_ingestor.test_utils.fakes import make_config, make_set


@pytest.mark.asyncio
async def test_build_ingestion_set_binds_clients():
    config = make_config("sales")
    credential = MagicMock()
    with patch(
        "kusto_ingestor.ingestion.factory.DataLakeDirectoryLister"
    ) as lister_cls, patch(
        "kusto_ingestor.ingestion.factory.BlobObjectStore"
    ) as store_cls, patch(
        "kusto_ingestor.ingestion.factory.KustoIngestionSink"
    ) as sink_cls:
        for cls in (lister_cls, store_cls, sink_cls):
            cls.return_value.load = AsyncMock()

        ingestion_set = await build_ingestion_set(
            config, credential, is_development=True, managed_identity_client_id="mi"
        )

    assert ingestion_set.config is config
    assert ingestion_set.lister is lister_cls.return_value
    assert ingestion_set.object_store is store_cls.return_value
    assert ingestion_set.sink is sink_cls.return_value
    lister_cls.assert_called_once_with(
        storage_account="account",
        container_name="container",
        directory_path="telemetry/sales",
        credential=credential,
        executor=None,
    )
    assert sink_cls.call_args.kwargs["is_development"] is True
    assert sink_cls.call_args.kwargs["managed_identity_client_id"] == "mi"
    for cls in (lister_cls, store_cls, sink_cls):
        cls.return_value.load.assert_awaited_once()


@pytest.mark.asyncio
async def test_failing_set_is_skipped():
    configs = [make_config("sales"), make_config("broken"), make_config("returns")]

    async def builder(config, credential, **kwargs):
        if config.set_id == "broken":
            raise ValueError("bad account")
        return make_set(config.set_id)

    ingestion_sets = await build_ingestion_sets(configs, MagicMock(), builder=builder)

    assert [s.key for s in ingestion_sets] == ["sales", "returns"]


@pytest.mark.asyncio
async def test_all_sets_failing_leaves_nothing_to_run():
    async def builder(config, credential, **kwargs):
        raise ValueError("bad account")

    ingestion_sets = await build_ingestion_sets(
        [make_config("sales")], MagicMock(), builder=builder
    )

    assert ingestion_sets == []
