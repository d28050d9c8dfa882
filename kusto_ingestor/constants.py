import os

from dotenv import load_dotenv

load_dotenv(dotenv_path=".env")

# Application Constants
APPLICATION_NAME = os.getenv("KUSTO_INGESTOR_APPLICATION_NAME", "kusto-ingestor")
# Development mode is keyed off the .NET host environment name as well
ENVIRONMENT_ENV = "KUSTO_INGESTOR_ENVIRONMENT"
DOTNET_ENVIRONMENT_ENV = "DOTNET_ENVIRONMENT"
DEFAULT_ENVIRONMENT = "Production"
ENVIRONMENT = os.getenv(
    ENVIRONMENT_ENV, os.getenv(DOTNET_ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)
)
DEVELOPMENT_ENVIRONMENT = "Development"
CONFIG_FILE_PATH = os.getenv("KUSTO_INGESTOR_CONFIG_FILE", "appsettings.json")
CONFIG_SECTION = "KustoIngestorConfig"
CONFIG_DETAILS_KEY = "kustoIngestorDetails"

# Identity Constants
MANAGED_IDENTITY_CLIENT_ID = os.getenv(
    "UserAssignedMIClientID", os.getenv("KUSTO_INGESTOR_MANAGED_IDENTITY_CLIENT_ID")
)

# Poll Loop Constants
MAX_FILES_PER_RUN = int(os.getenv("KUSTO_INGESTOR_MAX_FILES_PER_RUN", "1000"))
FILE_ROLLOVER_DELAY_SECONDS = int(
    os.getenv("KUSTO_INGESTOR_FILE_ROLLOVER_DELAY_SECONDS", "61")
)
POLL_INTERVAL_SECONDS = float(os.getenv("KUSTO_INGESTOR_POLL_INTERVAL_SECONDS", "0.5"))
CALL_TIMEOUT_SECONDS = float(os.getenv("KUSTO_INGESTOR_CALL_TIMEOUT_SECONDS", "300"))
MAX_WORKERS = int(os.getenv("KUSTO_INGESTOR_MAX_WORKERS", "10"))

# Dedupe Cache Constants
DEFAULT_CACHE_EXPIRY_MINUTES = 3
CACHE_EXPIRY_MINUTES_ENV = "CACHE_EXPIRY_MINUTES"

# Azure Constants
AZURE_BLOB_URL_TEMPLATE = "https://{account_name}.blob.core.windows.net"
AZURE_DATALAKE_URL_TEMPLATE = "https://{account_name}.dfs.core.windows.net"

# Logger Constants
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> <blue>[{level}]</blue> "
    "<cyan>{extra[logger_name]}</cyan> - <level>{message}</level>"
)
