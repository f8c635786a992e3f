"""
Unified wire shapes.

These models are the OpenAI chat-completion request, response and chunk
formats every adapter translates to and from, plus the small records the
router passes around. Provider-native payloads are plain dicts owned by
each adapter and never modelled here.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

Role = Literal["system", "user", "assistant"]
FinishReason = Literal["stop", "length"]


# =============================================================================
# Requests
# =============================================================================


class ChatMessage(BaseModel):
    """A single conversation turn."""

    role: Role
    content: str


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible chat completion request addressed to a unified model id."""

    model_config = ConfigDict(extra="ignore")

    model: str = Field(..., min_length=1, description="Unified model id (provider:model) or alias")
    messages: List[ChatMessage] = Field(..., min_length=1)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: Optional[bool] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop: Optional[Union[str, List[str]]] = None


# =============================================================================
# Responses
# =============================================================================


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionChoice(BaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: Optional[FinishReason] = None


class ChatCompletionResponse(BaseModel):
    """Non-streaming chat completion in OpenAI format."""

    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    choices: List[ChatCompletionChoice] = Field(..., min_length=1)
    usage: Usage = Field(default_factory=Usage)


class ChunkDelta(BaseModel):
    """Incremental message fragment. Unset fields are left out of the wire form."""

    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    content: Optional[str] = None


class ChatCompletionChunkChoice(BaseModel):
    index: int = 0
    delta: ChunkDelta = Field(default_factory=ChunkDelta)
    finish_reason: Optional[str] = None

    @field_serializer("delta")
    def _serialize_delta(self, delta: ChunkDelta) -> Dict[str, Any]:
        return delta.model_dump(exclude_none=True)


class ChatCompletionChunk(BaseModel):
    """One streamed chunk in OpenAI format. Always carries exactly one choice."""

    id: str
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int
    model: str
    choices: List[ChatCompletionChunkChoice] = Field(..., min_length=1, max_length=1)


# =============================================================================
# Models and credentials
# =============================================================================


class ProviderModel(BaseModel):
    """A model as advertised by a provider's catalog."""

    id: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    context_length: Optional[int] = None
    created: Optional[int] = None


class DecryptedCredentials(BaseModel):
    """
    Provider credentials decrypted for a single request.

    Accepts camelCase (``apiKey``) and snake_case (``api_key``) keys and
    keeps any provider-specific extra keys. Secrets are excluded from repr
    and must never be logged.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    api_key: str = Field(default="", repr=False)
    resource_name: Optional[str] = None
    deployment_id: Optional[str] = None
    region: Optional[str] = None
    access_key_id: Optional[str] = Field(default=None, repr=False)
    secret_access_key: Optional[str] = Field(default=None, repr=False)
    session_token: Optional[str] = Field(default=None, repr=False)
    service_account_json: Optional[str] = Field(default=None, repr=False)
    project_id: Optional[str] = None
    location: Optional[str] = None
    api_version: Optional[str] = None

    @field_validator("api_key", mode="before")
    @classmethod
    def _none_api_key(cls, v: Any) -> Any:
        return "" if v is None else v

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DecryptedCredentials":
        """Build credentials from a stored key/value bag."""
        values = dict(data)
        # Both spellings may be present; a non-empty one wins.
        api_key = values.pop("apiKey", None) or values.pop("api_key", None) or ""
        values.pop("api_key", None)
        return cls.model_validate({**values, "api_key": api_key})

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Look up a field or extra key by name."""
        if key in type(self).model_fields:
            value = getattr(self, key)
        else:
            value = (self.model_extra or {}).get(key)
        return default if value is None else value


@dataclass(frozen=True)
class ResolvedModel:
    """Output of model resolution for one request."""

    provider_id: str
    provider_model_id: str
    unified_id: str
    context_length: Optional[int] = None
