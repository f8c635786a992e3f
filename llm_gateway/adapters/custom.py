"""
Custom OpenAI-Compatible Adapter.

A single data-driven adapter for tenant-defined providers that expose
an OpenAI-compatible API. Base URL, auth header shape, API version and
endpoint paths come from a CustomProviderConfig.
"""

from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from llm_gateway.adapters.openai_compatible import OpenAICompatibleAdapter
from llm_gateway.adapters.templates import ProviderTemplate
from llm_gateway.schemas import DecryptedCredentials

API_KEY_PLACEHOLDER = "${API_KEY}"
DEFAULT_AUTH_HEADER_NAME = "Authorization"
DEFAULT_AUTH_VALUE_TEMPLATE = "Bearer ${API_KEY}"
DEFAULT_MODELS_PATH = "/v1/models"
DEFAULT_CHAT_COMPLETIONS_PATH = "/v1/chat/completions"
DEFAULT_EMBEDDINGS_PATH = "/v1/embeddings"


class CustomProviderConfig(BaseModel):
    """Configuration of a custom OpenAI-compatible provider."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    base_url: str = Field(..., min_length=1, description="API base URL, e.g. https://api.custom.com")
    auth_header_name: Optional[str] = Field(None, description="Defaults to Authorization")
    auth_value_template: Optional[str] = Field(None, description="Defaults to 'Bearer ${API_KEY}'")
    api_version: Optional[str] = Field(None, description="Sent as the api-version query parameter")
    models_path: Optional[str] = None
    chat_completions_path: Optional[str] = None
    embeddings_path: Optional[str] = None


def build_auth_header_value(template: str, api_key: str) -> str:
    """Substitute the first ``${API_KEY}`` placeholder in the template."""
    return template.replace(API_KEY_PLACEHOLDER, api_key, 1)


def _build_endpoint(config: CustomProviderConfig, path: str) -> str:
    url = f"{config.base_url}{path}"
    if config.api_version:
        url += f"?api-version={config.api_version}"
    return url


def build_models_endpoint(config: CustomProviderConfig) -> str:
    return _build_endpoint(config, config.models_path or DEFAULT_MODELS_PATH)


def build_chat_completions_endpoint(config: CustomProviderConfig) -> str:
    return _build_endpoint(config, config.chat_completions_path or DEFAULT_CHAT_COMPLETIONS_PATH)


def build_embeddings_endpoint(config: CustomProviderConfig) -> str:
    return _build_endpoint(config, config.embeddings_path or DEFAULT_EMBEDDINGS_PATH)


class CustomOpenAIAdapter(OpenAICompatibleAdapter):
    """Adapter instance for one tenant-defined provider."""

    STREAM_PROVIDER = "custom"

    def __init__(
        self,
        provider_id: str,
        display_name: str,
        config: CustomProviderConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        template = ProviderTemplate(
            id=provider_id,
            display_name=display_name,
            base_url=config.base_url,
            auth_type="api_key",
            models_endpoint=config.models_path or DEFAULT_MODELS_PATH,
            chat_endpoint=config.chat_completions_path or DEFAULT_CHAT_COMPLETIONS_PATH,
        )
        super().__init__(template, http_client)
        self.config = config

    def get_base_url(self, credentials: DecryptedCredentials) -> str:
        return self.config.base_url

    def build_headers(self, credentials: DecryptedCredentials) -> Dict[str, str]:
        header_name = self.config.auth_header_name or DEFAULT_AUTH_HEADER_NAME
        value_template = self.config.auth_value_template or DEFAULT_AUTH_VALUE_TEMPLATE
        return {
            "Content-Type": "application/json",
            header_name: build_auth_header_value(value_template, credentials.api_key),
        }

    def models_url(self, credentials: DecryptedCredentials) -> str:
        return build_models_endpoint(self.config)

    def chat_completions_url(self, credentials: DecryptedCredentials, provider_request: Dict[str, Any]) -> str:
        return build_chat_completions_endpoint(self.config)

    def get_config(self) -> CustomProviderConfig:
        return self.config.model_copy()
