"""
Groq Adapter.

Groq serves an OpenAI-compatible API under ``/openai``.
"""

from typing import Any, Dict, Optional

import httpx

from llm_gateway.adapters.openai_compatible import OpenAICompatibleAdapter
from llm_gateway.adapters.templates import BUILTIN_TEMPLATES
from llm_gateway.schemas import ProviderModel


class GroqAdapter(OpenAICompatibleAdapter):
    STREAM_PROVIDER = "groq"
    LIST_MODELS_ERROR = "Failed to fetch Groq models"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(BUILTIN_TEMPLATES["groq"], http_client)

    def parse_model(self, item: Dict[str, Any]) -> Optional[ProviderModel]:
        # Groq keeps deactivated models in the list
        if item.get("active") is False:
            return None
        return ProviderModel(
            id=item["id"],
            display_name=item["id"],
            context_length=item.get("context_window"),
            created=item.get("created"),
        )
