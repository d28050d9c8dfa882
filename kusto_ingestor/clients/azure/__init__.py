"""
Azure clients used by the ingestor.

- AzureAuthProvider: builds the token credential shared by every client
- DataLakeDirectoryLister: lists one Data Lake Storage Gen2 directory
- BlobObjectStore: reads and deletes blobs in one container
"""

from .auth import AzureAuthProvider
from .blob import BlobObjectStore
from .datalake import DataLakeDirectoryLister

__all__ = [
    "AzureAuthProvider",
    "BlobObjectStore",
    "DataLakeDirectoryLister",
]
