"""Configuration settings for the kusto ingestor using Pydantic.

Settings come from three places, highest precedence first:

1. Environment variables prefixed with ``KUSTO_INGESTOR_`` (plus
   ``CACHE_EXPIRY_MINUTES``, which overrides the dedupe cache TTL).
2. ``appsettings.{Environment}.json``, when present.
3. ``appsettings.json``.

The JSON files use the .NET worker host layout::

    {
        "UserAssignedMIClientID": "...",
        "KustoIngestorConfig": {
            "maxFilesPerRun": 1000,
            "kustoIngestorDetails": [
                {"blobStorageAccount": "...", "blobContainerName": "...", ...}
            ]
        }
    }
"""

import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import orjson
from pydantic import Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from kusto_ingestor.common.error_codes import ConfigurationError
from kusto_ingestor.constants import (
    CACHE_EXPIRY_MINUTES_ENV,
    CALL_TIMEOUT_SECONDS,
    CONFIG_DETAILS_KEY,
    CONFIG_FILE_PATH,
    CONFIG_SECTION,
    DEFAULT_CACHE_EXPIRY_MINUTES,
    DEFAULT_ENVIRONMENT,
    DEVELOPMENT_ENVIRONMENT,
    DOTNET_ENVIRONMENT_ENV,
    ENVIRONMENT,
    ENVIRONMENT_ENV,
    FILE_ROLLOVER_DELAY_SECONDS,
    MANAGED_IDENTITY_CLIENT_ID,
    MAX_FILES_PER_RUN,
    MAX_WORKERS,
    POLL_INTERVAL_SECONDS,
)
from kusto_ingestor.ingestion.models import IngestionSetConfig
from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)

# camelCase keys accepted in the KustoIngestorConfig section
_SECTION_KEYS = {
    "rolloverDelaySeconds": "rollover_delay_seconds",
    "maxFilesPerRun": "max_files_per_run",
    "cacheExpiryMinutes": "cache_expiry_minutes",
    "pollIntervalSeconds": "poll_interval_seconds",
    "callTimeoutSeconds": "call_timeout_seconds",
    "concurrentSets": "concurrent_sets",
    "authType": "auth_type",
    "maxWorkers": "max_workers",
}

# top-level keys of appsettings.json
_ROOT_KEYS = {
    "UserAssignedMIClientID": "managed_identity_client_id",
    "usermi": "managed_identity_client_id",
}


class IngestorSettings(BaseSettings):
    """Central configuration for the ingestor.

    Environment Variables:
        KUSTO_INGESTOR_ROLLOVER_DELAY_SECONDS: Minimum file age before ingestion
        KUSTO_INGESTOR_MAX_FILES_PER_RUN: Files attempted per set per cycle
        KUSTO_INGESTOR_CACHE_EXPIRY_MINUTES: Dedupe cache TTL
        CACHE_EXPIRY_MINUTES: Dedupe cache TTL, overrides the above
        KUSTO_INGESTOR_POLL_INTERVAL_SECONDS: Wait between cycles
        KUSTO_INGESTOR_CALL_TIMEOUT_SECONDS: Bound on each storage/ingest call, 0 disables
        KUSTO_INGESTOR_CONCURRENT_SETS: Process ingestion sets concurrently
    """

    model_config = SettingsConfigDict(
        env_prefix="KUSTO_INGESTOR_",
        case_sensitive=False,
        extra="ignore",
    )

    ingestion_sets: List[IngestionSetConfig] = Field(default_factory=list)
    rollover_delay_seconds: float = Field(default=FILE_ROLLOVER_DELAY_SECONDS, ge=0)
    max_files_per_run: int = Field(default=MAX_FILES_PER_RUN, ge=1)
    cache_expiry_minutes: float = Field(default=DEFAULT_CACHE_EXPIRY_MINUTES, gt=0)
    poll_interval_seconds: float = Field(default=POLL_INTERVAL_SECONDS, ge=0)
    call_timeout_seconds: float = Field(default=CALL_TIMEOUT_SECONDS, ge=0)
    concurrent_sets: bool = False
    environment: str = ENVIRONMENT
    auth_type: str = "default"
    managed_identity_client_id: Optional[str] = MANAGED_IDENTITY_CLIENT_ID
    max_workers: int = Field(default=MAX_WORKERS, ge=1)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # Environment variables win over values read from appsettings files
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == DEVELOPMENT_ENVIRONMENT.lower()

    @property
    def rollover_delay(self) -> timedelta:
        return timedelta(seconds=self.rollover_delay_seconds)

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(minutes=get_cache_expiry_minutes(self.cache_expiry_minutes))

    @property
    def call_timeout(self) -> Optional[float]:
        return self.call_timeout_seconds or None


def get_cache_expiry_minutes(default: float = DEFAULT_CACHE_EXPIRY_MINUTES) -> float:
    """Read ``CACHE_EXPIRY_MINUTES``, falling back to ``default`` if unset or invalid."""
    raw = os.environ.get(CACHE_EXPIRY_MINUTES_ENV)
    if raw is None or not raw.strip():
        return default
    try:
        minutes = float(raw)
    except ValueError:
        logger.warning(
            f"Ignoring invalid {CACHE_EXPIRY_MINUTES_ENV}={raw!r}, using {default}"
        )
        return default
    if minutes <= 0:
        logger.warning(
            f"Ignoring non-positive {CACHE_EXPIRY_MINUTES_ENV}={raw!r}, using {default}"
        )
        return default
    return minutes


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        data = orjson.loads(path.read_bytes())
    except OSError as e:
        raise ConfigurationError(ConfigurationError.CONFIG_FILE_ERROR, f"{path}: {e}")
    except orjson.JSONDecodeError as e:
        raise ConfigurationError(
            ConfigurationError.CONFIG_FILE_ERROR, f"{path} is not valid JSON: {e}"
        )
    if not isinstance(data, dict):
        raise ConfigurationError(
            ConfigurationError.CONFIG_FILE_ERROR, f"{path} must contain a JSON object"
        )
    return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_ingestion_sets(details: List[Any]) -> List[IngestionSetConfig]:
    """Validate ingestion set entries one by one.

    An invalid entry is logged and dropped so that it cannot stop the other
    sets from starting.
    """
    configs = []
    for index, raw in enumerate(details):
        try:
            configs.append(IngestionSetConfig.model_validate(raw))
        except ValidationError as e:
            error = ConfigurationError(
                ConfigurationError.INGESTION_SET_CONFIG_ERROR,
                f"entry {index}: {e.error_count()} validation error(s)",
            )
            logger.error(f"Skipping ingestion set: {error}\n{e}")
    return configs


def settings_from_document(
    document: Dict[str, Any], environment: Optional[str] = None
) -> IngestorSettings:
    """Build settings from a parsed appsettings document.

    A given ``environment`` overrides the environment of the returned
    settings, including any ``KUSTO_INGESTOR_ENVIRONMENT`` value.
    """
    section = document.get(CONFIG_SECTION) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(
            ConfigurationError.CONFIG_VALIDATION_ERROR,
            f"{CONFIG_SECTION} must be an object",
        )

    details = section.get(CONFIG_DETAILS_KEY) or []
    if not isinstance(details, list):
        raise ConfigurationError(
            ConfigurationError.CONFIG_VALIDATION_ERROR,
            f"{CONFIG_SECTION}.{CONFIG_DETAILS_KEY} must be a list",
        )

    options: Dict[str, Any] = {}
    for key, field_name in _ROOT_KEYS.items():
        if document.get(key):
            options[field_name] = document[key]
    for key, value in section.items():
        field_name = _SECTION_KEYS.get(key, key)
        if (
            field_name in IngestorSettings.model_fields
            and field_name != "ingestion_sets"
        ):
            options[field_name] = value

    try:
        settings = IngestorSettings(
            ingestion_sets=parse_ingestion_sets(details), **options
        )
    except ValidationError as e:
        raise ConfigurationError(ConfigurationError.CONFIG_VALIDATION_ERROR, str(e))

    if environment:
        settings = settings.model_copy(update={"environment": environment})
    return settings


def resolve_environment(environment: Optional[str] = None) -> str:
    """Environment name: the argument, else the environment variables."""
    return (
        environment
        or os.environ.get(ENVIRONMENT_ENV)
        or os.environ.get(DOTNET_ENVIRONMENT_ENV)
        or DEFAULT_ENVIRONMENT
    )


def load_settings(
    path: Union[str, Path, None] = None, environment: Optional[str] = None
) -> IngestorSettings:
    """Load settings from ``appsettings.json`` and its environment overlay.

    Args:
        path: Base settings file. Defaults to ``KUSTO_INGESTOR_CONFIG_FILE`` or
            ``appsettings.json``.
        environment: Name used to find the overlay file
            ``appsettings.{environment}.json`` next to ``path``. It is also the
            environment of the returned settings. Defaults to
            ``KUSTO_INGESTOR_ENVIRONMENT``, then ``DOTNET_ENVIRONMENT``.

    Raises:
        ConfigurationError: If a file cannot be read or the options are invalid.
    """
    path = Path(path or CONFIG_FILE_PATH)
    environment = resolve_environment(environment)

    document = _read_json(path)
    overlay_path = path.with_name(f"{path.stem}.{environment}{path.suffix}")
    if overlay_path.exists():
        logger.info(f"Applying settings overlay {overlay_path}")
        document = _deep_merge(document, _read_json(overlay_path))

    settings = settings_from_document(document, environment=environment)
    logger.info(
        f"Loaded {len(settings.ingestion_sets)} ingestion set(s) from {path}"
    )
    return settings

