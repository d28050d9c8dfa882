"""Object store access backed by Azure Blob Storage."""

import io
from concurrent.futures import Executor
from typing import BinaryIO, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContainerClient

from kusto_ingestor.clients import ClientInterface
from kusto_ingestor.common.error_codes import (
    ClientError,
    ObjectNotFoundError,
    ObjectStoreError,
)
from kusto_ingestor.common.utils import run_sync
from kusto_ingestor.constants import AZURE_BLOB_URL_TEMPLATE
from kusto_ingestor.ingestion.interfaces import ObjectStore
from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)


class BlobObjectStore(ObjectStore, ClientInterface):
    """
    Reads and deletes blobs in one container.

    Attributes:
        storage_account (str): Storage account name
        container_name (str): Container name
        credential (TokenCredential): Azure credential instance
        executor (Optional[Executor]): Thread pool for SDK calls
    """

    def __init__(
        self,
        storage_account: str,
        container_name: str,
        credential: TokenCredential,
        executor: Optional[Executor] = None,
        container_client: Optional[ContainerClient] = None,
    ):
        self.storage_account = storage_account
        self.container_name = container_name
        self.credential = credential
        self.executor = executor
        self._container_client = container_client

    async def load(self) -> None:
        """Create the container client. No request is sent."""
        if self._container_client is not None:
            return
        try:
            service_client = BlobServiceClient(
                account_url=AZURE_BLOB_URL_TEMPLATE.format(
                    account_name=self.storage_account
                ),
                credential=self.credential,
            )
            self._container_client = service_client.get_container_client(
                self.container_name
            )
        except (ValueError, TypeError) as e:
            raise ClientError(
                ClientError.CLIENT_CREATION_ERROR,
                f"Blob client for {self.storage_account}/{self.container_name}: {e}",
            )

    async def close(self) -> None:
        if self._container_client is not None:
            await run_sync(self._container_client.close, self.executor)()
            self._container_client = None

    async def open_read(self, name: str) -> BinaryIO:
        """Download ``name`` into an in-memory stream positioned at its start.

        Raises:
            ObjectNotFoundError: If the blob no longer exists.
            ObjectStoreError: If the download fails.
        """
        if self._container_client is None:
            await self.load()
        blob_client = self._container_client.get_blob_client(name)
        try:
            return await run_sync(self._download, self.executor)(blob_client)
        except ResourceNotFoundError as e:
            raise ObjectNotFoundError(
                ObjectNotFoundError.OBJECT_NOT_FOUND_ERROR, f"{name}: {e}"
            )
        except AzureError as e:
            raise ObjectStoreError(ObjectStoreError.OBJECT_READ_ERROR, f"{name}: {e}")

    async def delete(self, name: str) -> None:
        """Delete ``name``. A blob that is already gone counts as deleted.

        Raises:
            ObjectStoreError: If the delete fails.
        """
        if self._container_client is None:
            await self.load()
        blob_client = self._container_client.get_blob_client(name)
        try:
            await run_sync(blob_client.delete_blob, self.executor)()
        except ResourceNotFoundError:
            logger.warning(f"Blob {name} was already deleted")
        except AzureError as e:
            raise ObjectStoreError(ObjectStoreError.OBJECT_DELETE_ERROR, f"{name}: {e}")

    @staticmethod
    def _download(blob_client) -> BinaryIO:
        buffer = io.BytesIO()
        blob_client.download_blob().readinto(buffer)
        buffer.seek(0)
        return buffer
