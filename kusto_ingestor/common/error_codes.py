"""
Error codes for the kusto ingestor.

Error codes follow the format: KustoIngestor-{Component}-{HTTP_Code}-{Unique_ID}

Components:
- Config: Settings and ingestion set configuration errors
- Client: Credential and SDK client construction errors
- Storage: Directory listing and object store errors
- Ingestion: Kusto ingestion errors
"""

from enum import Enum
from typing import Dict, Optional


class ErrorComponent(Enum):
    """Components that can generate errors in the system."""

    CONFIG = "Config"
    CLIENT = "Client"
    STORAGE = "Storage"
    INGESTION = "Ingestion"


class ErrorCode:
    """Error code with component, HTTP code, and description."""

    def __init__(
        self, component: str, http_code: str, unique_id: str, description: str
    ):
        self.code = f"KustoIngestor-{component}-{http_code}-{unique_id}"
        self.description = description

    def __str__(self) -> str:
        return f"{self.code}: {self.description}"


CONFIG_ERRORS = {
    "CONFIG_FILE_ERROR": ErrorCode("Config", "500", "00", "Configuration file error"),
    "CONFIG_VALIDATION_ERROR": ErrorCode(
        "Config", "422", "00", "Configuration validation error"
    ),
    "INGESTION_SET_CONFIG_ERROR": ErrorCode(
        "Config", "422", "01", "Ingestion set configuration error"
    ),
}

CLIENT_ERRORS = {
    "CLIENT_AUTH_ERROR": ErrorCode(
        "Client", "401", "00", "Client authentication failed"
    ),
    "CREDENTIALS_PARSE_ERROR": ErrorCode(
        "Client", "400", "00", "Credentials parse error"
    ),
    "CLIENT_CREATION_ERROR": ErrorCode("Client", "500", "00", "Client creation error"),
}

STORAGE_ERRORS = {
    "DIRECTORY_LIST_ERROR": ErrorCode("Storage", "503", "00", "Directory list error"),
    "OBJECT_NOT_FOUND_ERROR": ErrorCode("Storage", "404", "00", "Object not found"),
    "OBJECT_READ_ERROR": ErrorCode("Storage", "503", "01", "Object read error"),
    "OBJECT_DELETE_ERROR": ErrorCode("Storage", "503", "02", "Object delete error"),
    "STORAGE_TIMEOUT_ERROR": ErrorCode(
        "Storage", "504", "00", "Storage call timed out"
    ),
}

INGESTION_ERRORS = {
    "INGESTION_ERROR": ErrorCode("Ingestion", "503", "00", "Ingestion failed"),
    "INGESTION_STREAM_ERROR": ErrorCode(
        "Ingestion", "400", "00", "Ingestion stream error"
    ),
}

# Combined dictionary of all error codes
ERROR_CODES: Dict[str, ErrorCode] = {
    **CONFIG_ERRORS,
    **CLIENT_ERRORS,
    **STORAGE_ERRORS,
    **INGESTION_ERRORS,
}


class IngestorError(Exception):
    """Base class for errors raised by the ingestor.

    The rendered message is ``"{code}: {description}"`` followed by any detail
    passed at construction.
    """

    def __init__(self, error_code: ErrorCode, detail: Optional[str] = None):
        self.error_code = error_code
        self.detail = detail
        message = str(error_code)
        if detail:
            message = f"{message} - {detail}"
        super().__init__(message)


class ConfigurationError(IngestorError):
    CONFIG_FILE_ERROR = CONFIG_ERRORS["CONFIG_FILE_ERROR"]
    CONFIG_VALIDATION_ERROR = CONFIG_ERRORS["CONFIG_VALIDATION_ERROR"]
    INGESTION_SET_CONFIG_ERROR = CONFIG_ERRORS["INGESTION_SET_CONFIG_ERROR"]


class ClientError(IngestorError):
    CLIENT_AUTH_ERROR = CLIENT_ERRORS["CLIENT_AUTH_ERROR"]
    CREDENTIALS_PARSE_ERROR = CLIENT_ERRORS["CREDENTIALS_PARSE_ERROR"]
    CLIENT_CREATION_ERROR = CLIENT_ERRORS["CLIENT_CREATION_ERROR"]


class ListingError(IngestorError):
    DIRECTORY_LIST_ERROR = STORAGE_ERRORS["DIRECTORY_LIST_ERROR"]
    STORAGE_TIMEOUT_ERROR = STORAGE_ERRORS["STORAGE_TIMEOUT_ERROR"]


class ObjectStoreError(IngestorError):
    OBJECT_READ_ERROR = STORAGE_ERRORS["OBJECT_READ_ERROR"]
    OBJECT_DELETE_ERROR = STORAGE_ERRORS["OBJECT_DELETE_ERROR"]


class ObjectNotFoundError(ObjectStoreError):
    OBJECT_NOT_FOUND_ERROR = STORAGE_ERRORS["OBJECT_NOT_FOUND_ERROR"]


class IngestionError(IngestorError):
    INGESTION_ERROR = INGESTION_ERRORS["INGESTION_ERROR"]
    INGESTION_STREAM_ERROR = INGESTION_ERRORS["INGESTION_STREAM_ERROR"]
