"""
Azure authentication provider for the ingestor.

Builds the single ``TokenCredential`` shared by the Data Lake, Blob and Kusto
clients. Two authentication methods are supported:

- default: ``DefaultAzureCredential`` restricted to managed identity,
  workload identity and developer tool sources, optionally pinned to a
  user-assigned managed identity
- service_principal: client ID, client secret and tenant ID
"""

import asyncio
from typing import Any, Dict, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential, DefaultAzureCredential

from kusto_ingestor.common.error_codes import ClientError
from kusto_ingestor.observability.logger_adaptor import get_logger

logger = get_logger(__name__)


class AzureAuthProvider:
    """Creates Azure credentials for the supported authentication methods."""

    AUTH_TYPE_DEFAULT = "default"
    AUTH_TYPE_SERVICE_PRINCIPAL = "service_principal"

    def get_supported_auth_types(self) -> list[str]:
        return [self.AUTH_TYPE_DEFAULT, self.AUTH_TYPE_SERVICE_PRINCIPAL]

    async def create_credential(
        self,
        auth_type: str = AUTH_TYPE_DEFAULT,
        credentials: Optional[Dict[str, Any]] = None,
    ) -> TokenCredential:
        """
        Create an Azure credential.

        Args:
            auth_type (str): ``default`` or ``service_principal``.
            credentials (Optional[Dict[str, Any]]): For ``default``, an optional
                ``managed_identity_client_id``. For ``service_principal``,
                ``tenant_id``, ``client_id`` and ``client_secret``.

        Returns:
            TokenCredential: Azure credential instance.

        Raises:
            ClientError: If the authentication type is not supported or the
                credentials are invalid.
        """
        auth_type = (auth_type or "").lower()
        logger.debug(f"Creating Azure credential with auth type: {auth_type}")

        if auth_type not in self.get_supported_auth_types():
            raise ClientError(
                ClientError.CREDENTIALS_PARSE_ERROR,
                f"Unsupported authentication type. Received: {auth_type}",
            )

        try:
            if auth_type == self.AUTH_TYPE_SERVICE_PRINCIPAL:
                return await self._create_service_principal_credential(credentials)
            return await self._create_default_credential(credentials)
        except (ClientError, ClientAuthenticationError):
            raise
        except Exception as e:
            logger.error(f"Failed to create Azure credential: {str(e)}")
            raise ClientError(ClientError.CLIENT_AUTH_ERROR, str(e))

    async def _create_default_credential(
        self, credentials: Optional[Dict[str, Any]]
    ) -> DefaultAzureCredential:
        client_id = (credentials or {}).get("managed_identity_client_id")
        if client_id:
            logger.debug(f"Using user-assigned managed identity: {client_id}")

        return await asyncio.get_running_loop().run_in_executor(
            None,
            lambda: DefaultAzureCredential(
                managed_identity_client_id=client_id,
                exclude_environment_credential=True,
                exclude_shared_token_cache_credential=True,
                exclude_interactive_browser_credential=True,
                exclude_azure_cli_credential=True,
            ),
        )

    async def _create_service_principal_credential(
        self, credentials: Optional[Dict[str, Any]]
    ) -> ClientSecretCredential:
        if not credentials:
            raise ClientError(
                ClientError.CREDENTIALS_PARSE_ERROR,
                "Credentials required for service principal authentication",
            )

        tenant_id = credentials.get("tenant_id") or credentials.get("tenantId")
        client_id = credentials.get("client_id") or credentials.get("clientId")
        client_secret = credentials.get("client_secret") or credentials.get(
            "clientSecret"
        )

        missing = [
            key
            for key, value in (
                ("tenant_id", tenant_id),
                ("client_id", client_id),
                ("client_secret", client_secret),
            )
            if not value
        ]
        if missing:
            raise ClientError(
                ClientError.CREDENTIALS_PARSE_ERROR,
                f"Missing required credential keys: {', '.join(missing)}",
            )

        logger.debug(f"Creating service principal credential for tenant: {tenant_id}")
        return await asyncio.get_running_loop().run_in_executor(
            None, ClientSecretCredential, tenant_id, client_id, client_secret
        )
