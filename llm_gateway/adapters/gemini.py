"""
Google Gemini Adapter.

Talks to the Generative Language API with the API key passed as the
``key`` query parameter. Gemini has no system role: system turns are
sent as user turns, and assistant turns use the ``model`` role.
"""

import time
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from llm_gateway.adapters.anthropic import stop_sequences
from llm_gateway.adapters.base import ProviderAdapter, drop_none, generate_id, strip_provider_prefix
from llm_gateway.adapters.templates import BUILTIN_TEMPLATES
from llm_gateway.errors import ProviderResponseError, UnsupportedOperationError
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


def to_gemini_contents(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    """Map chat messages to Gemini contents, keeping every turn in order."""
    return [
        {
            "role": "model" if message.role == "assistant" else "user",
            "parts": [{"text": message.content}],
        }
        for message in messages
    ]


def gemini_generation_config(request: ChatCompletionRequest) -> Dict[str, Any]:
    return drop_none({
        "temperature": request.temperature,
        "maxOutputTokens": request.max_tokens,
        "topP": request.top_p,
        "stopSequences": stop_sequences(request.stop),
    })


def map_gemini_finish_reason(reason: Optional[str]) -> str:
    """STOP maps to stop; every other reason is reported as length."""
    return "stop" if reason == "STOP" else "length"


class GeminiAdapter(ProviderAdapter):
    """Adapter for Google AI Studio Gemini models (``?key=`` auth)."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(BUILTIN_TEMPLATES["google-gemini"], http_client)

    async def list_models(self, credentials: DecryptedCredentials) -> List[ProviderModel]:
        response = await self._http_get(
            f"{self.template.base_url}{self.template.models_endpoint}",
            {},
            params={"key": credentials.api_key},
        )
        self._raise_for_status(response, "Failed to fetch models")

        models = (response.data or {}).get("models") or []
        return [
            ProviderModel(
                id=model["name"].replace("models/", "", 1),
                display_name=model.get("displayName"),
                description=model.get("description"),
                context_length=model.get("inputTokenLimit"),
            )
            for model in models
            if "generateContent" in (model.get("supportedGenerationMethods") or [])
        ]

    def transform_request(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        gemini_request: Dict[str, Any] = {"contents": to_gemini_contents(request.messages)}
        generation_config = gemini_generation_config(request)
        if generation_config:
            gemini_request["generationConfig"] = generation_config
        return gemini_request

    def transform_response(self, response: Dict[str, Any], model: str) -> ChatCompletionResponse:
        """
        Raises:
            ProviderResponseError: If no candidates were returned
        """
        candidates = response.get("candidates") or []
        if not candidates:
            raise ProviderResponseError(
                "No candidates returned. Content might be blocked.",
                provider_id=self.provider_id,
            )

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = (parts[0].get("text") if parts else None) or ""
        usage = response.get("usageMetadata") or {}

        return ChatCompletionResponse(
            id=generate_id(),
            created=int(time.time()),
            model=model,
            choices=[ChatCompletionChoice(
                index=0,
                message=ChatMessage(role="assistant", content=text),
                finish_reason=map_gemini_finish_reason(candidate.get("finishReason")),
            )],
            usage=Usage(
                prompt_tokens=usage.get("promptTokenCount") or 0,
                completion_tokens=usage.get("candidatesTokenCount") or 0,
                total_tokens=usage.get("totalTokenCount") or 0,
            ),
        )

    async def chat_completion(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> ChatCompletionResponse:
        model_id = strip_provider_prefix(request.model)
        response = await self._http_post(
            f"{self.template.base_url}/models/{model_id}:generateContent",
            self.transform_request(request),
            {"Content-Type": "application/json"},
            params={"key": credentials.api_key},
        )
        self._raise_for_status(response, "Gemini API Error")
        return self.transform_response(response.data or {}, request.model)

    def chat_completion_stream(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> AsyncIterator[ChatCompletionChunk]:
        raise UnsupportedOperationError(
            "Streaming not yet fully implemented for Gemini adapter.",
            provider_id=self.provider_id,
        )

    async def validate_credentials(self, credentials: DecryptedCredentials) -> bool:
        return await self._probe(self.list_models(credentials))
