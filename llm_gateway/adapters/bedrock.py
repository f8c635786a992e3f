"""
AWS Bedrock Adapter.

Invokes Anthropic Claude models hosted on Bedrock. Requests are signed
with AWS Signature Version 4 over the exact body bytes that are sent.
Bedrock's response streaming uses the binary AWS event-stream encoding
and is not supported.
"""

import json
import time
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import quote

import boto3
import httpx
import structlog
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest

from llm_gateway.adapters.anthropic import DEFAULT_MAX_TOKENS, split_system_message, stop_sequences
from llm_gateway.adapters.base import ProviderAdapter, drop_none, generate_id, strip_provider_prefix
from llm_gateway.adapters.templates import BUILTIN_TEMPLATES
from llm_gateway.errors import ProviderConfigurationError, ProviderHTTPError, UnsupportedOperationError
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
from llm_gateway.streaming import map_anthropic_stop_reason

logger = structlog.get_logger(__name__)

DEFAULT_REGION = "us-east-1"
BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"
SIGNING_SERVICE = "bedrock"


class BedrockAdapter(ProviderAdapter):
    """Adapter for Claude models on AWS Bedrock (SigV4 request signing)."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(BUILTIN_TEMPLATES["aws-bedrock"], http_client)

    @staticmethod
    def get_region(credentials: DecryptedCredentials) -> str:
        return credentials.region or DEFAULT_REGION

    # =========================================================================
    # Signing
    # =========================================================================

    def _sign(
        self,
        credentials: DecryptedCredentials,
        method: str,
        url: str,
        body: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, str]:
        """
        Return the request headers with SigV4 authentication added.

        Raises:
            ProviderConfigurationError: If the access key pair is missing
        """
        if not credentials.access_key_id or not credentials.secret_access_key:
            raise ProviderConfigurationError(
                "AWS access key id and secret access key are required",
                param="access_key_id",
                provider_id=self.provider_id,
            )

        session = boto3.Session(
            aws_access_key_id=credentials.access_key_id,
            aws_secret_access_key=credentials.secret_access_key,
            aws_session_token=credentials.session_token or None,
            region_name=self.get_region(credentials),
        )
        aws_request = AWSRequest(method=method, url=url, data=body, headers=dict(headers or {}))
        SigV4Auth(
            session.get_credentials().get_frozen_credentials(),
            SIGNING_SERVICE,
            self.get_region(credentials),
        ).add_auth(aws_request)
        return dict(aws_request.headers.items())

    def _runtime_url(self, credentials: DecryptedCredentials, model_id: str) -> str:
        region = self.get_region(credentials)
        return f"https://bedrock-runtime.{region}.amazonaws.com/model/{quote(model_id, safe='')}/invoke"

    # =========================================================================
    # Contract
    # =========================================================================

    async def list_models(self, credentials: DecryptedCredentials) -> List[ProviderModel]:
        region = self.get_region(credentials)
        url = f"https://bedrock.{region}.amazonaws.com{self.template.models_endpoint}"
        headers = self._sign(credentials, "GET", url)

        response = await self._http_get(url, headers)
        self._raise_for_status(response, "Failed to fetch models")

        summaries = (response.data or {}).get("modelSummaries") or []
        return [
            ProviderModel(
                id=summary["modelId"],
                display_name=summary.get("modelName"),
                description=f"Provider: {summary.get('providerName')}",
            )
            for summary in summaries
            if "TEXT" in (summary.get("outputModalities") or [])
        ]

    def transform_request(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        system_message, messages = split_system_message(request.messages)

        body: Dict[str, Any] = {
            "anthropic_version": BEDROCK_ANTHROPIC_VERSION,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": messages,
        }
        if system_message:
            body["system"] = system_message
        body.update(drop_none({
            "temperature": request.temperature,
            "top_p": request.top_p,
            "stop_sequences": stop_sequences(request.stop),
        }))
        return body

    def transform_response(self, response: Dict[str, Any], model: str) -> ChatCompletionResponse:
        content_blocks = response.get("content") or []
        text = (content_blocks[0].get("text") if content_blocks else None) or ""
        usage = response.get("usage") or {}
        input_tokens = usage.get("input_tokens") or 0
        output_tokens = usage.get("output_tokens") or 0

        return ChatCompletionResponse(
            id=response.get("id") or generate_id(),
            created=int(time.time()),
            model=model,
            choices=[ChatCompletionChoice(
                index=0,
                message=ChatMessage(role="assistant", content=text),
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
        url = self._runtime_url(credentials, strip_provider_prefix(request.model))
        body = json.dumps(self.transform_request(request)).encode("utf-8")
        headers = self._sign(credentials, "POST", url, body, {"Content-Type": "application/json"})

        response = await self._http_post(url, None, headers, content=body)
        if not response.ok:
            raise ProviderHTTPError(
                f"Bedrock API Error {response.status}: {response.text}",
                upstream_status=response.status,
                body=response.text,
                provider_id=self.provider_id,
            )
        return self.transform_response(response.data or {}, request.model)

    def chat_completion_stream(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> AsyncIterator[ChatCompletionChunk]:
        raise UnsupportedOperationError(
            "Streaming not supported for Bedrock without AWS SDK.",
            provider_id=self.provider_id,
        )

    async def validate_credentials(self, credentials: DecryptedCredentials) -> bool:
        return await self._probe(self.list_models(credentials))
