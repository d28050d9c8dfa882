"""Unit tests for the Data Lake directory lister."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from kusto_ingestor.clients.azure.datalake import DataLakeDirectoryLister
from kusto_ingestor.common.error_codes import ClientError, ListingError

CREATED = datetime(2024, 5, 1, 11, 0, 0, tzinfo=timezone.utc)


def _path(name, is_directory=False, creation_time=CREATED, last_modified=None):
    return SimpleNamespace(
        name=name,
        is_directory=is_directory,
        creation_time=creation_time,
        last_modified=last_modified,
    )


def _pages(*pages, error=None):
    for page in pages:
        yield page
    if error is not None:
        raise error


@pytest.fixture
def file_system_client():
    client = MagicMock()
    client.get_directory_client.return_value.exists.return_value = True
    return client


def _lister(file_system_client, directory_path="telemetry/sales/"):
    return DataLakeDirectoryLister(
        storage_account="account",
        container_name="container",
        directory_path=directory_path,
        credential=MagicMock(),
        file_system_client=file_system_client,
    )


async def _collect(lister):
    return [entry async for entry in lister.list_entries()]


class TestDataLakeDirectoryLister:
    @pytest.mark.asyncio
    async def test_lists_entries_across_pages(self, file_system_client):
        file_system_client.get_paths.return_value.by_page.return_value = _pages(
            [_path("telemetry/sales/a.json"), _path("telemetry/sales/b.json")],
            [_path("telemetry/sales/archive", is_directory=True)],
        )

        entries = await _collect(_lister(file_system_client))

        assert [e.name for e in entries] == [
            "telemetry/sales/a.json",
            "telemetry/sales/b.json",
            "telemetry/sales/archive",
        ]
        assert [e.is_directory for e in entries] == [False, False, True]
        assert entries[0].created_at == CREATED
        file_system_client.get_directory_client.assert_called_once_with(
            "telemetry/sales"
        )
        file_system_client.get_paths.assert_called_once_with(
            path="telemetry/sales", recursive=False
        )

    @pytest.mark.asyncio
    async def test_missing_directory_lists_nothing(self, file_system_client):
        file_system_client.get_directory_client.return_value.exists.return_value = (
            False
        )

        assert await _collect(_lister(file_system_client)) == []
        file_system_client.get_paths.assert_not_called()

    @pytest.mark.asyncio
    async def test_root_directory_skips_existence_check(self, file_system_client):
        file_system_client.get_paths.return_value.by_page.return_value = _pages(
            [_path("a.json")]
        )

        entries = await _collect(_lister(file_system_client, directory_path=""))

        assert [e.name for e in entries] == ["a.json"]
        file_system_client.get_directory_client.assert_not_called()
        file_system_client.get_paths.assert_called_once_with(
            path=None, recursive=False
        )

    @pytest.mark.asyncio
    async def test_directory_removed_during_listing(self, file_system_client):
        file_system_client.get_paths.return_value.by_page.return_value = _pages(
            [_path("telemetry/sales/a.json")], error=ResourceNotFoundError("gone")
        )

        entries = await _collect(_lister(file_system_client))

        assert [e.name for e in entries] == ["telemetry/sales/a.json"]

    @pytest.mark.asyncio
    async def test_listing_failure_raises_listing_error(self, file_system_client):
        file_system_client.get_paths.return_value.by_page.return_value = _pages(
            [_path("telemetry/sales/a.json")], error=HttpResponseError("throttled")
        )
        lister = _lister(file_system_client)

        seen = []
        with pytest.raises(ListingError) as exc_info:
            async for entry in lister.list_entries():
                seen.append(entry.name)

        assert seen == ["telemetry/sales/a.json"]
        assert exc_info.value.error_code is ListingError.DIRECTORY_LIST_ERROR

    @pytest.mark.asyncio
    async def test_existence_check_failure_raises_listing_error(
        self, file_system_client
    ):
        file_system_client.get_directory_client.return_value.exists.side_effect = (
            HttpResponseError("forbidden")
        )

        with pytest.raises(ListingError):
            await _collect(_lister(file_system_client))

    @pytest.mark.asyncio
    async def test_falls_back_to_last_modified(self, file_system_client):
        modified = datetime(2024, 5, 1, 10, 0, 0)
        file_system_client.get_paths.return_value.by_page.return_value = _pages(
            [_path("a.json", creation_time=None, last_modified=modified)]
        )

        entries = await _collect(_lister(file_system_client))

        assert entries[0].created_at == modified.replace(tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_load_builds_file_system_client(self):
        lister = DataLakeDirectoryLister(
            storage_account="account",
            container_name="container",
            directory_path="dir",
            credential=MagicMock(),
        )
        with patch(
            "kusto_ingestor.clients.azure.datalake.FileSystemClient"
        ) as mock_client:
            await lister.load()

        mock_client.assert_called_once_with(
            account_url="https://account.dfs.core.windows.net",
            file_system_name="container",
            credential=lister.credential,
        )

    @pytest.mark.asyncio
    async def test_load_failure_raises_client_error(self):
        lister = DataLakeDirectoryLister(
            storage_account="account",
            container_name="container",
            directory_path="dir",
            credential=MagicMock(),
        )
        with patch(
            "kusto_ingestor.clients.azure.datalake.FileSystemClient",
            side_effect=ValueError("bad url"),
        ):
            with pytest.raises(ClientError):
                await lister.load()

    @pytest.mark.asyncio
    async def test_close_releases_client(self, file_system_client):
        lister = _lister(file_system_client)

        await lister.close()

        file_system_client.close.assert_called_once()
        assert lister._file_system_client is None
