"""
Adapter Registry.

Maps provider string ids to adapter instances. Built-in adapters are
constructed lazily, one per provider id; custom adapters are registered
explicitly and can be removed. Adapters are stateless, so cached
instances never need invalidating.
"""

from typing import Callable, Dict, List, Optional

import httpx
import structlog

from llm_gateway.adapters.anthropic import AnthropicAdapter
from llm_gateway.adapters.azure import AzureAdapter
from llm_gateway.adapters.base import ProviderAdapter
from llm_gateway.adapters.bedrock import BedrockAdapter
from llm_gateway.adapters.custom import CustomOpenAIAdapter, CustomProviderConfig
from llm_gateway.adapters.gemini import GeminiAdapter
from llm_gateway.adapters.groq import GroqAdapter
from llm_gateway.adapters.mistral import MistralAdapter
from llm_gateway.adapters.openai import OpenAIAdapter
from llm_gateway.adapters.vertex import VertexAdapter

logger = structlog.get_logger(__name__)

AdapterFactory = Callable[[Optional[httpx.AsyncClient]], ProviderAdapter]

BUILTIN_PROVIDER_IDS: List[str] = ["openai", "anthropic", "azure", "mistral", "groq"]

_ADAPTER_FACTORIES: Dict[str, AdapterFactory] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "azure": AzureAdapter,
    "mistral": MistralAdapter,
    "groq": GroqAdapter,
    "aws-bedrock": BedrockAdapter,
    "google-gemini": GeminiAdapter,
    "google-vertex": VertexAdapter,
}


class AdapterRegistry:
    """
    Registry of provider adapters.

    Construct one per process (or per test) and hand it to the router.
    An optional shared HTTP client is passed to every adapter it builds.
    """

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._http_client = http_client
        self._adapters: Dict[str, ProviderAdapter] = {}
        self._custom_adapters: Dict[str, CustomOpenAIAdapter] = {}

    def get_adapter(self, provider_id: str) -> Optional[ProviderAdapter]:
        """
        Get the adapter for a provider.

        Lookup order: built-in cache, custom adapters, then construct a
        built-in adapter on demand.

        Returns:
            The adapter, or None if the provider is unknown
        """
        if provider_id in self._adapters:
            return self._adapters[provider_id]

        if provider_id in self._custom_adapters:
            return self._custom_adapters[provider_id]

        factory = _ADAPTER_FACTORIES.get(provider_id)
        if factory is None:
            return None

        adapter = factory(self._http_client)
        self._adapters[provider_id] = adapter
        logger.debug("Adapter created", provider=provider_id)
        return adapter

    def register_custom_adapter(
        self,
        provider_id: str,
        display_name: str,
        config: CustomProviderConfig,
    ) -> CustomOpenAIAdapter:
        """Register (or replace) a custom OpenAI-compatible provider."""
        adapter = CustomOpenAIAdapter(provider_id, display_name, config, self._http_client)
        self._custom_adapters[provider_id] = adapter
        logger.info("Custom adapter registered", provider=provider_id, base_url=config.base_url)
        return adapter

    def get_custom_adapter(self, provider_id: str) -> Optional[CustomOpenAIAdapter]:
        return self._custom_adapters.get(provider_id)

    def remove_custom_adapter(self, provider_id: str) -> bool:
        """Returns True if the adapter was registered."""
        removed = self._custom_adapters.pop(provider_id, None) is not None
        if removed:
            logger.info("Custom adapter removed", provider=provider_id)
        return removed

    def is_custom_provider(self, provider_id: str) -> bool:
        return provider_id in self._custom_adapters

    def get_available_provider_ids(self) -> List[str]:
        """Built-in providers followed by registered custom providers."""
        extended = [pid for pid in _ADAPTER_FACTORIES if pid not in BUILTIN_PROVIDER_IDS]
        return [*BUILTIN_PROVIDER_IDS, *extended, *self._custom_adapters.keys()]

    def has_adapter_for_provider(self, provider_id: str) -> bool:
        return provider_id in _ADAPTER_FACTORIES or provider_id in self._custom_adapters
