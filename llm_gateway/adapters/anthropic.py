"""
Anthropic Adapter.

Translates OpenAI-format requests to Anthropic's Messages API. Anthropic
takes a single top-level ``system`` string, requires ``max_tokens`` and
streams typed events instead of OpenAI deltas.
"""

import time
from contextlib import aclosing
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx
import structlog
from pydantic import ValidationError

from llm_gateway.adapters.base import ProviderAdapter, drop_none, generate_id, strip_provider_prefix
from llm_gateway.adapters.templates import BUILTIN_TEMPLATES
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
    map_anthropic_stop_reason,
    normalize_provider_chunk,
)

logger = structlog.get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096
VALIDATION_MODEL = "claude-3-haiku-20240307"

# Anthropic has no model list endpoint
ANTHROPIC_MODELS: List[ProviderModel] = [
    ProviderModel(id="claude-3-5-sonnet-20241022", display_name="Claude 3.5 Sonnet", context_length=200000),
    ProviderModel(id="claude-3-5-haiku-20241022", display_name="Claude 3.5 Haiku", context_length=200000),
    ProviderModel(id="claude-3-opus-20240229", display_name="Claude 3 Opus", context_length=200000),
    ProviderModel(id="claude-3-sonnet-20240229", display_name="Claude 3 Sonnet", context_length=200000),
    ProviderModel(id="claude-3-haiku-20240307", display_name="Claude 3 Haiku", context_length=200000),
]


def split_system_message(messages: List[ChatMessage]) -> Tuple[Optional[str], List[Dict[str, str]]]:
    """
    Separate system messages from the conversation.

    Only the first system message is kept; later ones are dropped. The
    order of the remaining turns is preserved.
    """
    system_message: Optional[str] = None
    turns = []
    for message in messages:
        if message.role == "system":
            if system_message is None:
                system_message = message.content
        else:
            turns.append({"role": message.role, "content": message.content})
    return system_message, turns


def stop_sequences(stop: Any) -> Optional[List[str]]:
    if not stop:
        return None
    return list(stop) if isinstance(stop, list) else [stop]


class AnthropicAdapter(ProviderAdapter):
    """Adapter for the Anthropic Messages API (``x-api-key`` header)."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(BUILTIN_TEMPLATES["anthropic"], http_client)

    def build_headers(self, credentials: DecryptedCredentials) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": credentials.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _messages_url(self, credentials: DecryptedCredentials) -> str:
        return f"{self.get_base_url(credentials)}{self.template.chat_endpoint}"

    async def list_models(self, credentials: DecryptedCredentials) -> List[ProviderModel]:
        return [model.model_copy() for model in ANTHROPIC_MODELS]

    def transform_request(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        system_message, messages = split_system_message(request.messages)

        anthropic_request: Dict[str, Any] = {
            "model": strip_provider_prefix(request.model),
            "messages": messages,
            "max_tokens": request.max_tokens if request.max_tokens is not None else DEFAULT_MAX_TOKENS,
        }
        if system_message:
            anthropic_request["system"] = system_message
        anthropic_request.update(drop_none({
            "stream": request.stream,
            "temperature": request.temperature,
            "top_p": request.top_p,
            "stop_sequences": stop_sequences(request.stop),
        }))
        return anthropic_request

    def transform_response(self, response: Dict[str, Any], model: str) -> ChatCompletionResponse:
        content = "".join(
            block.get("text", "")
            for block in response.get("content") or []
            if block.get("type") == "text"
        )
        usage = response.get("usage") or {}
        input_tokens = usage.get("input_tokens") or 0
        output_tokens = usage.get("output_tokens") or 0

        return ChatCompletionResponse(
            id=response.get("id") or generate_id(),
            created=int(time.time()),
            model=model,
            choices=[ChatCompletionChoice(
                index=0,
                message=ChatMessage(role="assistant", content=content),
                finish_reason=map_anthropic_stop_reason(response.get("stop_reason")),
            )],
            usage=Usage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
        )

    async def chat_completion(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> ChatCompletionResponse:
        provider_request = self.transform_request(request.model_copy(update={"stream": False}))
        response = await self._http_post(
            self._messages_url(credentials),
            provider_request,
            self.build_headers(credentials),
        )
        self._raise_for_status(response, "Chat completion failed")
        return self.transform_response(response.data or {}, request.model)

    def chat_completion_stream(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> AsyncIterator[ChatCompletionChunk]:
        provider_request = self.transform_request(request.model_copy(update={"stream": True}))
        return self._stream_events(
            self._messages_url(credentials),
            provider_request,
            self.build_headers(credentials),
            request.model,
        )

    async def _stream_events(
        self,
        url: str,
        provider_request: Dict[str, Any],
        headers: Dict[str, str],
        unified_model_id: str,
    ) -> AsyncIterator[ChatCompletionChunk]:
        message_id: Optional[str] = None
        fragments = self._http_post_stream(url, provider_request, headers)

        # Anthropic events may straddle reads, so partial lines are kept
        async with aclosing(iter_sse_payloads(fragments, retain_partial_lines=True)) as payloads:
            async for data in payloads:
                event = load_sse_payload(data)
                if event is None:
                    continue
                if event.get("type") == "message_start":
                    message_id = (event.get("message") or {}).get("id") or message_id
                    continue
                if message_id is None:
                    message_id = generate_id()
                try:
                    chunk = normalize_provider_chunk(event, "anthropic", unified_model_id, message_id)
                except ValidationError:
                    logger.debug("Dropping malformed stream event", provider=self.provider_id)
                    continue
                if chunk is not None:
                    yield chunk

    async def validate_credentials(self, credentials: DecryptedCredentials) -> bool:
        try:
            response = await self._http_post(
                self._messages_url(credentials),
                {
                    "model": VALIDATION_MODEL,
                    "messages": [{"role": "user", "content": "Hi"}],
                    "max_tokens": 1,
                },
                self.build_headers(credentials),
            )
        except Exception as e:
            logger.warning(
                "Credential validation failed",
                provider=self.provider_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False

        if not response.ok:
            logger.warning("Credential validation rejected", provider=self.provider_id, status=response.status)
        return response.ok
