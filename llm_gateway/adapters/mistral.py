"""
Mistral Adapter.

OpenAI-compatible, except that frequency and presence penalties are not
accepted and are left out of the request.
"""

from typing import Any, Dict, Optional

import httpx

from llm_gateway.adapters.openai_compatible import OpenAICompatibleAdapter
from llm_gateway.adapters.templates import BUILTIN_TEMPLATES
from llm_gateway.schemas import ProviderModel


class MistralAdapter(OpenAICompatibleAdapter):
    STREAM_PROVIDER = "mistral"
    SUPPORTS_PENALTIES = False
    LIST_MODELS_ERROR = "Failed to fetch Mistral models"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(BUILTIN_TEMPLATES["mistral"], http_client)

    def parse_model(self, item: Dict[str, Any]) -> Optional[ProviderModel]:
        capabilities = item.get("capabilities") or {}
        if capabilities.get("completion_chat") is False:
            return None
        return ProviderModel(
            id=item["id"],
            display_name=item["id"],
            context_length=item.get("max_context_length"),
            created=item.get("created"),
        )
