"""
Directory lister backed by Azure Data Lake Storage Gen2.

The SDK client is synchronous; each page of results is fetched in a thread
pool so the poll loop is never blocked, and pages are only requested as the
caller iterates.
"""

from concurrent.futures import Executor
from datetime import datetime, timezone
from typing import AsyncIterator, Iterator, List, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.filedatalake import FileSystemClient, PathProperties

from kusto_ingestor.clients import ClientInterface
from kusto_ingestor.common.error_codes import ClientError, ListingError
from kusto_ingestor.common.utils import run_sync
from kusto_ingestor.constants import AZURE_DATALAKE_URL_TEMPLATE
from kusto_ingestor.ingestion.interfaces import DirectoryLister
from kusto_ingestor.ingestion.models import DirectoryEntry
from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)


class DataLakeDirectoryLister(DirectoryLister, ClientInterface):
    """
    Lists the direct children of one directory in a Data Lake file system.

    Attributes:
        storage_account (str): Storage account name
        container_name (str): File system (container) name
        directory_path (str): Directory to list, empty for the file system root
        credential (TokenCredential): Azure credential instance
        executor (Optional[Executor]): Thread pool for SDK calls
    """

    def __init__(
        self,
        storage_account: str,
        container_name: str,
        directory_path: str,
        credential: TokenCredential,
        executor: Optional[Executor] = None,
        file_system_client: Optional[FileSystemClient] = None,
    ):
        self.storage_account = storage_account
        self.container_name = container_name
        self.directory_path = directory_path.strip("/")
        self.credential = credential
        self.executor = executor
        self._file_system_client = file_system_client

    async def load(self) -> None:
        """Create the file system client. No request is sent."""
        if self._file_system_client is not None:
            return
        try:
            self._file_system_client = FileSystemClient(
                account_url=AZURE_DATALAKE_URL_TEMPLATE.format(
                    account_name=self.storage_account
                ),
                file_system_name=self.container_name,
                credential=self.credential,
            )
        except (ValueError, TypeError) as e:
            raise ClientError(
                ClientError.CLIENT_CREATION_ERROR,
                f"Data Lake client for {self.storage_account}/{self.container_name}: {e}",
            )

    async def close(self) -> None:
        if self._file_system_client is not None:
            await run_sync(self._file_system_client.close, self.executor)()
            self._file_system_client = None

    async def list_entries(self) -> AsyncIterator[DirectoryEntry]:
        """Yield the entries of the directory, page by page.

        Raises:
            ListingError: If the listing fails for any reason other than the
                directory not existing.
        """
        if self._file_system_client is None:
            await self.load()

        if not await self._directory_exists():
            logger.info(f"Directory does not exist: {self.directory_path}")
            return

        paths = self._file_system_client.get_paths(
            path=self.directory_path or None, recursive=False
        )
        pages = paths.by_page()
        while True:
            try:
                page = await run_sync(self._next_page, self.executor)(pages)
            except ResourceNotFoundError:
                logger.info(f"Directory no longer exists: {self.directory_path}")
                return
            except AzureError as e:
                logger.error(
                    f"Error while listing directory {self.directory_path}: {str(e)}"
                )
                raise ListingError(ListingError.DIRECTORY_LIST_ERROR, str(e))

            if page is None:
                return
            for path in page:
                yield self._to_entry(path)

    async def _directory_exists(self) -> bool:
        if not self.directory_path:
            return True
        directory_client = self._file_system_client.get_directory_client(
            self.directory_path
        )
        try:
            return await run_sync(directory_client.exists, self.executor)()
        except AzureError as e:
            logger.error(
                f"Error while checking directory {self.directory_path}: {str(e)}"
            )
            raise ListingError(ListingError.DIRECTORY_LIST_ERROR, str(e))

    @staticmethod
    def _next_page(pages: Iterator) -> Optional[List[PathProperties]]:
        try:
            return list(next(pages))
        except StopIteration:
            return None

    @staticmethod
    def _to_entry(path: PathProperties) -> DirectoryEntry:
        created_at = getattr(path, "creation_time", None) or path.last_modified
        if isinstance(created_at, datetime) and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return DirectoryEntry(
            name=path.name,
            is_directory=bool(path.is_directory),
            created_at=created_at,
        )
