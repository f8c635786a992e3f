"""
Google Vertex AI Adapter.

Authenticates with a service account (OAuth2 access token scoped to
cloud-platform) and serves two request schemas: Gemini models use
``contents``/``generateContent`` while PaLM models use
``instances``/``predict``.
"""

import asyncio
import json
import time
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import structlog
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from llm_gateway.adapters.base import ProviderAdapter, drop_none, strip_provider_prefix
from llm_gateway.adapters.gemini import to_gemini_contents
from llm_gateway.adapters.templates import BUILTIN_TEMPLATES
from llm_gateway.errors import (
    ProviderAuthenticationError,
    ProviderConfigurationError,
    UnsupportedOperationError,
)
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

logger = structlog.get_logger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
DEFAULT_LOCATION = "us-central1"
DEFAULT_CONTEXT_LENGTH = 8192
PALM_TOP_K = 40

# Served when the publisher model list cannot be fetched
STATIC_MODELS: List[ProviderModel] = [
    ProviderModel(id="gemini-1.0-pro", display_name="Gemini 1.0 Pro", context_length=32768),
    ProviderModel(id="gemini-1.5-pro-preview-0409", display_name="Gemini 1.5 Pro (Preview)", context_length=1048576),
    ProviderModel(id="gemini-pro-vision", display_name="Gemini Pro Vision", context_length=16384),
    ProviderModel(id="text-bison@002", display_name="PaLM 2 for Text (text-bison@002)", context_length=8192),
    ProviderModel(id="chat-bison@002", display_name="PaLM 2 for Chat (chat-bison@002)", context_length=8192),
]


def is_gemini_model(model_id: str) -> bool:
    return "gemini" in model_id


class VertexAdapter(ProviderAdapter):
    """Adapter for Google Vertex AI publisher models."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(BUILTIN_TEMPLATES["google-vertex"], http_client)

    # =========================================================================
    # Credentials
    # =========================================================================

    @staticmethod
    def _service_account_source(credentials: DecryptedCredentials) -> Optional[str]:
        # The JSON may also arrive in the generic api key field
        return credentials.service_account_json or credentials.api_key or None

    def _parse_service_account(self, credentials: DecryptedCredentials) -> Dict[str, Any]:
        source = self._service_account_source(credentials)
        if not source:
            raise ProviderConfigurationError(
                "Service Account JSON or API Key is missing",
                param="service_account_json",
                provider_id=self.provider_id,
            )
        try:
            info = json.loads(source)
        except ValueError:
            raise ProviderConfigurationError(
                "Invalid Service Account JSON",
                param="service_account_json",
                provider_id=self.provider_id,
            )
        if not isinstance(info, dict):
            raise ProviderConfigurationError(
                "Invalid Service Account JSON",
                param="service_account_json",
                provider_id=self.provider_id,
            )
        return info

    async def get_access_token(self, credentials: DecryptedCredentials) -> str:
        """
        Obtain a bearer token for Vertex AI.

        An api key that already is an OAuth2 access token (``ya29...``) is
        used as-is; otherwise a token is minted from the service account.

        Raises:
            ProviderConfigurationError: If no usable service account JSON is present
            ProviderAuthenticationError: If the token exchange fails
        """
        if not credentials.service_account_json and credentials.api_key.startswith("ya29"):
            return credentials.api_key

        info = self._parse_service_account(credentials)
        try:
            google_credentials = service_account.Credentials.from_service_account_info(
                info,
                scopes=[CLOUD_PLATFORM_SCOPE],
            )
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, google_credentials.refresh, GoogleAuthRequest())
        except (GoogleAuthError, ValueError, KeyError) as e:
            logger.warning("Vertex token exchange failed", error_type=type(e).__name__, error=str(e))
            raise ProviderAuthenticationError(
                "Failed to authenticate with Service Account JSON",
                provider_id=self.provider_id,
            ) from e

        if not google_credentials.token:
            raise ProviderAuthenticationError("Failed to retrieve access token", provider_id=self.provider_id)
        return google_credentials.token

    def get_project_id(self, credentials: DecryptedCredentials) -> str:
        if credentials.project_id:
            return credentials.project_id
        source = self._service_account_source(credentials)
        if not source:
            return ""
        try:
            info = json.loads(source)
        except ValueError:
            return ""
        return info.get("project_id", "") if isinstance(info, dict) else ""

    @staticmethod
    def get_location(credentials: DecryptedCredentials) -> str:
        return credentials.location or DEFAULT_LOCATION

    def _models_base(self, project: str, location: str) -> str:
        return (
            f"https://{location}-aiplatform.googleapis.com/v1"
            f"/projects/{project}/locations/{location}/publishers/google/models"
        )

    # =========================================================================
    # Contract
    # =========================================================================

    async def list_models(self, credentials: DecryptedCredentials) -> List[ProviderModel]:
        """Publisher models, or the static list when the API cannot be used."""
        try:
            project = self.get_project_id(credentials)
            if not project:
                raise ProviderConfigurationError("Project ID is missing", provider_id=self.provider_id)
            access_token = await self.get_access_token(credentials)
            response = await self._http_get(
                self._models_base(project, self.get_location(credentials)),
                {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
            )
        except Exception as e:
            logger.warning("Vertex model list unavailable, using static list", error_type=type(e).__name__, error=str(e))
            return self.static_model_list()

        if not response.ok:
            logger.warning("Vertex model list request failed, using static list", status=response.status)
            return self.static_model_list()

        models = (response.data or {}).get("models") or []
        if not models:
            logger.warning("Vertex returned an empty model list, using static list")
            return self.static_model_list()

        return [
            ProviderModel(
                id=model["name"].split("/")[-1],
                display_name=model.get("displayName"),
                description=model.get("description"),
                context_length=(model.get("inputShape") or {}).get("maxSequenceLength") or DEFAULT_CONTEXT_LENGTH,
            )
            for model in models
        ]

    @staticmethod
    def static_model_list() -> List[ProviderModel]:
        return [model.model_copy() for model in STATIC_MODELS]

    def transform_request(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        model_id = strip_provider_prefix(request.model)

        if is_gemini_model(model_id):
            vertex_request: Dict[str, Any] = {"contents": to_gemini_contents(request.messages)}
            generation_config = drop_none({
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
                "topP": request.top_p,
            })
            if generation_config:
                vertex_request["generationConfig"] = generation_config
            return vertex_request

        prompt = "\n".join(f"{message.role}: {message.content}" for message in request.messages)
        return {
            "instances": [{"content": prompt}],
            "parameters": {
                **drop_none({
                    "temperature": request.temperature,
                    "maxOutputTokens": request.max_tokens,
                    "topP": request.top_p,
                }),
                "topK": PALM_TOP_K,
            },
        }

    def transform_response(self, response: Dict[str, Any], model: str) -> ChatCompletionResponse:
        content = ""
        candidates = response.get("candidates") or []
        predictions = response.get("predictions") or []
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            content = (parts[0].get("text") if parts else None) or ""
        if not content and predictions:
            content = predictions[0].get("content") or ""

        return ChatCompletionResponse(
            id=f"vertex-{int(time.time() * 1000)}",
            created=int(time.time()),
            model=model,
            choices=[ChatCompletionChoice(
                index=0,
                message=ChatMessage(role="assistant", content=content),
                finish_reason="stop",
            )],
            usage=Usage(),
        )

    async def chat_completion(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> ChatCompletionResponse:
        project = self.get_project_id(credentials)
        if not project:
            raise ProviderConfigurationError(
                "Vertex AI Project ID is required for chat completion.",
                param="project_id",
                provider_id=self.provider_id,
            )

        model_id = strip_provider_prefix(request.model)
        action = "generateContent" if is_gemini_model(model_id) else "predict"
        url = f"{self._models_base(project, self.get_location(credentials))}/{model_id}:{action}"

        access_token = await self.get_access_token(credentials)
        response = await self._http_post(
            url,
            self.transform_request(request),
            {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"},
        )
        self._raise_for_status(response, "Vertex AI API Error")
        return self.transform_response(response.data or {}, request.model)

    def chat_completion_stream(
        self,
        request: ChatCompletionRequest,
        credentials: DecryptedCredentials,
    ) -> AsyncIterator[ChatCompletionChunk]:
        raise UnsupportedOperationError("Streaming not supported for Vertex AI yet.", provider_id=self.provider_id)

    async def validate_credentials(self, credentials: DecryptedCredentials) -> bool:
        return await self._probe(self.get_access_token(credentials))
