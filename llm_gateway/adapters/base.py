"""
Provider Adapter Base Class.

This module defines the interface every provider adapter implements.
An adapter translates between the OpenAI-compatible chat completion
shapes and one provider's native wire format, and owns the HTTP calls
to that provider.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import structlog

from llm_gateway.adapters.templates import ProviderTemplate, substitute_placeholders
from llm_gateway.errors import ProviderConnectionError, ProviderHTTPError
from llm_gateway.schemas import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    DecryptedCredentials,
    ProviderModel,
)
from llm_gateway.streaming import generate_id

logger = structlog.get_logger(__name__)

# Re-exported for adapters
__all__ = [
    "HttpResponse",
    "ProviderAdapter",
    "generate_id",
    "strip_provider_prefix",
    "drop_none",
]


@dataclass
class HttpResponse:
    """Response from a provider call."""

    status: int
    data: Any
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def strip_provider_prefix(model: str) -> str:
    """Drop the ``provider:`` prefix of a unified model id, splitting at the first colon."""
    if ":" in model:
        return model.split(":", 1)[1]
    return model


def drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    """Remove keys whose value is None."""
    return {key: value for key, value in values.items() if value is not None}


class ProviderAdapter(ABC):
    """
    Base class for provider adapters.

    Each adapter must implement:

    1. list_models() - Enumerate the provider's chat models
    2. transform_request() - Unified request to provider request (pure)
    3. transform_response() - Provider response to unified response (pure)
    4. chat_completion() - Full non-streaming call
    5. chat_completion_stream() - Streaming call yielding unified chunks
    6. validate_credentials() - Best-effort probe returning a bool

    Adapters hold only their template and an optional shared HTTP client,
    so one instance serves concurrent requests.
    """

    def __init__(self, template: ProviderTemplate, http_client: Optional[httpx.AsyncClient] = None):
        self.provider_id = template.id
        self.display_name = template.display_name
        self.template = template
        self._http_client = http_client

    # =========================================================================
    # Contract
    # =========================================================================

    @abstractmethod
    async def list_models(self, credentials: DecryptedCredentials) -> List[ProviderModel]:
        """
        Fetch available models from the provider.

        Raises:
            ProviderHTTPError: If the provider answers with a non-2xx status
        """

    @abstractmethod
    def transform_request(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        """Transform an OpenAI-format request into the provider's request body."""

    @abstractmethod
    def transform_response(self, response: Dict[str, Any], model: str) -> ChatCompletionResponse:
        """Transform a provider response body into an OpenAI-format response."""

    @abstractmethod
    async def chat_completion(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> ChatCompletionResponse:
        """Execute a non-streaming chat completion."""

    @abstractmethod
    def chat_completion_stream(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> AsyncIterator[ChatCompletionChunk]:
        """
        Execute a streaming chat completion.

        Configuration problems and unsupported streaming are raised here,
        before any iteration or network I/O. The returned iterator releases
        the upstream connection when it is exhausted, fails or is closed.
        """

    @abstractmethod
    async def validate_credentials(self, credentials: DecryptedCredentials) -> bool:
        """Probe the provider with the credentials. Never raises."""

    # =========================================================================
    # Helpers
    # =========================================================================

    def get_base_url(self, credentials: DecryptedCredentials) -> str:
        """Template base URL with ``{{resource_name}}`` filled from credentials."""
        return substitute_placeholders(
            self.template.base_url,
            {"resource_name": credentials.resource_name},
        )

    def build_headers(self, credentials: DecryptedCredentials) -> Dict[str, str]:
        """JSON content type plus the template's auth headers."""
        headers = {"Content-Type": "application/json"}
        for name, value in self.template.headers.items():
            headers[name] = substitute_placeholders(
                value,
                {"api_key": credentials.api_key, "resource_name": credentials.resource_name},
            )
        return headers

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        """
        HTTP client for one call.

        Transport failures (connect, timeout, interrupted read) raised while
        the client is in use surface as ProviderConnectionError.
        """
        try:
            if self._http_client is not None:
                yield self._http_client
            else:
                async with httpx.AsyncClient() as client:
                    yield client
        except httpx.HTTPError as e:
            logger.warning(
                "Provider unreachable",
                provider=self.provider_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise ProviderConnectionError(
                f"Failed to reach provider: {type(e).__name__}",
                provider_id=self.provider_id,
            ) from e

    @staticmethod
    def _to_http_response(response: httpx.Response) -> HttpResponse:
        try:
            data = response.json()
        except ValueError:
            data = None
        return HttpResponse(
            status=response.status_code,
            data=data,
            headers=dict(response.headers),
            text=response.text,
        )

    async def _http_get(
        self,
        url: str,
        headers: Dict[str, str],
        params: Optional[Dict[str, str]] = None,
    ) -> HttpResponse:
        async with self._client() as client:
            response = await client.get(url, headers=headers, params=params)
        return self._to_http_response(response)

    async def _http_post(
        self,
        url: str,
        body: Any,
        headers: Dict[str, str],
        params: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
    ) -> HttpResponse:
        """POST JSON, or pre-encoded ``content`` when the body bytes were signed."""
        async with self._client() as client:
            if content is not None:
                response = await client.post(url, content=content, headers=headers, params=params)
            else:
                response = await client.post(url, json=body, headers=headers, params=params)
        return self._to_http_response(response)

    async def _http_post_stream(
        self,
        url: str,
        body: Any,
        headers: Dict[str, str],
        params: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[str]:
        """
        POST and yield the decoded response body as it arrives.

        Raises:
            ProviderHTTPError: Before yielding anything, if the status is not 2xx
        """
        async with self._client() as client:
            async with client.stream("POST", url, json=body, headers=headers, params=params) as response:
                if not response.is_success:
                    error_body = (await response.aread()).decode("utf-8", errors="replace")
                    raise ProviderHTTPError(
                        f"HTTP {response.status_code}: {error_body}",
                        upstream_status=response.status_code,
                        body=error_body,
                        provider_id=self.provider_id,
                    )
                try:
                    async for text in response.aiter_text():
                        yield text
                finally:
                    logger.debug("Upstream stream released", provider=self.provider_id)

    def _raise_for_status(self, response: HttpResponse, action: str) -> None:
        if not response.ok:
            raise ProviderHTTPError(
                f"{action}: HTTP {response.status}",
                upstream_status=response.status,
                body=response.text,
                provider_id=self.provider_id,
            )

    async def _probe(self, probe: Any) -> bool:
        """Await a probe coroutine, collapsing any failure to False."""
        try:
            await probe
            return True
        except Exception as e:
            logger.warning(
                "Credential validation failed",
                provider=self.provider_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
