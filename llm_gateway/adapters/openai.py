"""
OpenAI Adapter.

The gateway speaks OpenAI's format, so requests pass through with the
provider prefix stripped and the model list is narrowed to chat models.
"""

from typing import Any, Dict, Optional

import httpx

from llm_gateway.adapters.openai_compatible import OpenAICompatibleAdapter
from llm_gateway.adapters.templates import BUILTIN_TEMPLATES
from llm_gateway.schemas import ProviderModel

CHAT_MODEL_MARKERS = ("gpt", "o1", "chatgpt")


class OpenAIAdapter(OpenAICompatibleAdapter):
    """Adapter for the official OpenAI API (``Authorization: Bearer``)."""

    STREAM_PROVIDER = "openai"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(BUILTIN_TEMPLATES["openai"], http_client)

    def parse_model(self, item: Dict[str, Any]) -> Optional[ProviderModel]:
        model_id = item["id"]
        if not any(marker in model_id for marker in CHAT_MODEL_MARKERS):
            return None
        return ProviderModel(id=model_id, display_name=model_id, created=item.get("created"))
