"""
OpenAI-Compatible Adapter Base.

Shared request/response mapping for providers that speak the OpenAI
chat completions format (OpenAI, Azure, Groq, Mistral and tenant-defined
custom providers). Subclasses supply endpoints, auth headers and the
model-list filtering rules.
"""

import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Optional

import structlog
from pydantic import ValidationError

from llm_gateway.adapters.base import ProviderAdapter, drop_none, generate_id, strip_provider_prefix
from llm_gateway.errors import ProviderResponseError
from llm_gateway.schemas import (
    ChatCompletionChoice,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    DecryptedCredentials,
    ProviderModel,
    Usage,
)
from llm_gateway.streaming import (
    iter_sse_payloads,
    load_sse_payload,
    map_openai_finish_reason,
    normalize_provider_chunk,
)

logger = structlog.get_logger(__name__)


class OpenAICompatibleAdapter(ProviderAdapter):
    """Base for adapters whose upstream accepts the OpenAI request format."""

    # Key passed to normalize_provider_chunk
    STREAM_PROVIDER: str = "openai"

    # Mistral rejects frequency/presence penalties
    SUPPORTS_PENALTIES: bool = True

    LIST_MODELS_ERROR: str = "Failed to fetch models"

    # =========================================================================
    # Endpoints (overridable)
    # =========================================================================

    def models_url(self, credentials: DecryptedCredentials) -> str:
        return f"{self.get_base_url(credentials)}{self.template.models_endpoint}"

    def chat_completions_url(self, credentials: DecryptedCredentials, provider_request: Dict[str, Any]) -> str:
        return f"{self.get_base_url(credentials)}{self.template.chat_endpoint}"

    def parse_model(self, item: Dict[str, Any]) -> Optional[ProviderModel]:
        """Map one entry of the provider's model list; None filters it out."""
        return ProviderModel(id=item["id"], display_name=item["id"], created=item.get("created"))

    # =========================================================================
    # Contract
    # =========================================================================

    async def list_models(self, credentials: DecryptedCredentials) -> List[ProviderModel]:
        response = await self._http_get(self.models_url(credentials), self.build_headers(credentials))
        self._raise_for_status(response, self.LIST_MODELS_ERROR)

        items = (response.data or {}).get("data") or []
        models = [self.parse_model(item) for item in items]
        return [model for model in models if model is not None]

    def transform_request(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        return drop_none({
            "model": strip_provider_prefix(request.model),
            "messages": [message.model_dump() for message in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "stream": request.stream,
            "top_p": request.top_p,
            "frequency_penalty": request.frequency_penalty if self.SUPPORTS_PENALTIES else None,
            "presence_penalty": request.presence_penalty if self.SUPPORTS_PENALTIES else None,
            "stop": request.stop,
        })

    def transform_response(self, response: Dict[str, Any], model: str) -> ChatCompletionResponse:
        choices = []
        for position, choice in enumerate(response.get("choices") or []):
            message = choice.get("message") or {}
            choices.append(ChatCompletionChoice(
                index=choice.get("index", position),
                message=ChatMessage(role="assistant", content=message.get("content") or ""),
                finish_reason=map_openai_finish_reason(choice.get("finish_reason")),
            ))
        if not choices:
            raise ProviderResponseError("Provider returned no choices", provider_id=self.provider_id)

        usage = response.get("usage") or {}
        return ChatCompletionResponse(
            id=response.get("id") or generate_id(),
            created=response.get("created") or int(time.time()),
            model=model,
            choices=choices,
            usage=Usage(
                prompt_tokens=usage.get("prompt_tokens") or 0,
                completion_tokens=usage.get("completion_tokens") or 0,
                total_tokens=usage.get("total_tokens") or 0,
            ),
        )

    async def chat_completion(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> ChatCompletionResponse:
        provider_request = self.transform_request(request.model_copy(update={"stream": False}))
        url = self.chat_completions_url(credentials, provider_request)

        response = await self._http_post(url, provider_request, self.build_headers(credentials))
        self._raise_for_status(response, "Chat completion failed")
        return self.transform_response(response.data or {}, request.model)

    def chat_completion_stream(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> AsyncIterator[ChatCompletionChunk]:
        provider_request = self.transform_request(request.model_copy(update={"stream": True}))
        url = self.chat_completions_url(credentials, provider_request)
        headers = self.build_headers(credentials)
        return self._stream_chunks(url, provider_request, headers, request.model)

    async def validate_credentials(self, credentials: DecryptedCredentials) -> bool:
        return await self._probe(self.list_models(credentials))

    # =========================================================================
    # Streaming
    # =========================================================================

    async def _stream_chunks(
        self,
        url: str,
        provider_request: Dict[str, Any],
        headers: Dict[str, str],
        unified_model_id: str,
    ) -> AsyncIterator[ChatCompletionChunk]:
        fragments = self._http_post_stream(url, provider_request, headers)
        async with aclosing(iter_sse_payloads(fragments)) as payloads:
            async for data in payloads:
                event = load_sse_payload(data)
                if event is None:
                    continue
                try:
                    chunk = normalize_provider_chunk(event, self.STREAM_PROVIDER, unified_model_id)
                except ValidationError:
                    logger.debug("Dropping malformed stream chunk", provider=self.provider_id)
                    continue
                if chunk is not None:
                    yield chunk
