"""
Azure OpenAI Adapter.

Azure hosts OpenAI models behind per-resource hostnames and named
deployments. Authentication uses the ``api-key`` header and every call
carries an ``api-version`` query parameter.
"""

from typing import Any, Dict, Optional

import httpx

from llm_gateway.adapters.openai_compatible import OpenAICompatibleAdapter
from llm_gateway.adapters.templates import BUILTIN_TEMPLATES
from llm_gateway.errors import ProviderConfigurationError
from llm_gateway.schemas import DecryptedCredentials, ProviderModel

DEFAULT_API_VERSION = "2023-05-15"


class AzureAdapter(OpenAICompatibleAdapter):
    STREAM_PROVIDER = "azure"
    LIST_MODELS_ERROR = "Failed to fetch deployments"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(BUILTIN_TEMPLATES["azure"], http_client)

    def get_base_url(self, credentials: DecryptedCredentials) -> str:
        """
        Raises:
            ProviderConfigurationError: If the credentials carry no resource name
        """
        if not credentials.resource_name:
            raise ProviderConfigurationError(
                "Azure resource name is required",
                param="resource_name",
                provider_id=self.provider_id,
            )
        return f"https://{credentials.resource_name}.openai.azure.com"

    def build_headers(self, credentials: DecryptedCredentials) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "api-key": credentials.api_key,
        }

    @staticmethod
    def _api_version(credentials: DecryptedCredentials) -> str:
        return credentials.api_version or DEFAULT_API_VERSION

    def models_url(self, credentials: DecryptedCredentials) -> str:
        return f"{self.get_base_url(credentials)}/openai/deployments?api-version={self._api_version(credentials)}"

    def chat_completions_url(self, credentials: DecryptedCredentials, provider_request: Dict[str, Any]) -> str:
        deployment_id = provider_request.get("model") or credentials.deployment_id
        return (
            f"{self.get_base_url(credentials)}/openai/deployments/{deployment_id}"
            f"/chat/completions?api-version={self._api_version(credentials)}"
        )

    def parse_model(self, item: Dict[str, Any]) -> Optional[ProviderModel]:
        return ProviderModel(
            id=item["id"],
            display_name=f"{item['id']} ({item.get('model')})",
            description=f"Azure deployment: {item.get('model')}",
        )
