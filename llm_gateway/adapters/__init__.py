"""
Provider Adapters Package.

Each adapter translates between the OpenAI-compatible chat completion
format and one provider's native API.

Available adapters:
- OpenAIAdapter, GroqAdapter, MistralAdapter, AzureAdapter: OpenAI format
- AnthropicAdapter: Anthropic Messages API
- BedrockAdapter: Claude on AWS Bedrock (SigV4)
- GeminiAdapter: Google AI Studio
- VertexAdapter: Google Vertex AI (service account)
- CustomOpenAIAdapter: tenant-configured OpenAI-compatible providers

Usage:
    from llm_gateway.adapters import AdapterRegistry

    registry = AdapterRegistry()
    adapter = registry.get_adapter("openai")
    response = await adapter.chat_completion(request, credentials)
"""

from llm_gateway.adapters.anthropic import AnthropicAdapter
from llm_gateway.adapters.azure import AzureAdapter
from llm_gateway.adapters.base import ProviderAdapter
from llm_gateway.adapters.bedrock import BedrockAdapter
from llm_gateway.adapters.custom import (
    CustomOpenAIAdapter,
    CustomProviderConfig,
    build_auth_header_value,
    build_models_endpoint,
)
from llm_gateway.adapters.gemini import GeminiAdapter
from llm_gateway.adapters.groq import GroqAdapter
from llm_gateway.adapters.mistral import MistralAdapter
from llm_gateway.adapters.openai import OpenAIAdapter
from llm_gateway.adapters.openai_compatible import OpenAICompatibleAdapter
from llm_gateway.adapters.registry import BUILTIN_PROVIDER_IDS, AdapterRegistry
from llm_gateway.adapters.vertex import VertexAdapter

__all__ = [
    # Base classes
    "ProviderAdapter",
    "OpenAICompatibleAdapter",
    # Adapters
    "OpenAIAdapter",
    "AnthropicAdapter",
    "AzureAdapter",
    "MistralAdapter",
    "GroqAdapter",
    "BedrockAdapter",
    "GeminiAdapter",
    "VertexAdapter",
    "CustomOpenAIAdapter",
    "CustomProviderConfig",
    "build_auth_header_value",
    "build_models_endpoint",
    # Registry
    "AdapterRegistry",
    "BUILTIN_PROVIDER_IDS",
]
