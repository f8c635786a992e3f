"""
Built-in provider templates.

A template is the static description of a provider: where it lives, how
it authenticates and which endpoints it exposes. Base URLs and paths may
contain ``{{placeholder}}`` tokens filled in from credentials at call time.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

_PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


@dataclass(frozen=True)
class ProviderTemplate:
    """Static provider configuration, immutable after construction."""

    id: str
    display_name: str
    base_url: str
    auth_type: str  # api_key | aws_sigv4 | service_account_json
    models_endpoint: str
    chat_endpoint: str
    headers: Dict[str, str] = field(default_factory=dict)
    supports_streaming: bool = True


def substitute_placeholders(text: str, values: Mapping[str, Optional[str]]) -> str:
    """Replace ``{{name}}`` tokens that have a non-empty value; leave the rest intact."""

    def _replace(match: "re.Match[str]") -> str:
        value = values.get(match.group(1))
        return value if value else match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, text)


BUILTIN_TEMPLATES: Dict[str, ProviderTemplate] = {
    "openai": ProviderTemplate(
        id="openai",
        display_name="OpenAI",
        base_url="https://api.openai.com",
        auth_type="api_key",
        models_endpoint="/v1/models",
        chat_endpoint="/v1/chat/completions",
        headers={"Authorization": "Bearer {{api_key}}"},
    ),
    "anthropic": ProviderTemplate(
        id="anthropic",
        display_name="Anthropic",
        base_url="https://api.anthropic.com",
        auth_type="api_key",
        models_endpoint="/v1/models",
        chat_endpoint="/v1/messages",
        headers={"x-api-key": "{{api_key}}", "anthropic-version": "2023-06-01"},
    ),
    "azure": ProviderTemplate(
        id="azure",
        display_name="Azure OpenAI",
        base_url="https://{{resource_name}}.openai.azure.com",
        auth_type="api_key",
        models_endpoint="/openai/deployments",
        chat_endpoint="/openai/deployments/{{model}}/chat/completions",
        headers={"api-key": "{{api_key}}"},
    ),
    "mistral": ProviderTemplate(
        id="mistral",
        display_name="Mistral AI",
        base_url="https://api.mistral.ai",
        auth_type="api_key",
        models_endpoint="/v1/models",
        chat_endpoint="/v1/chat/completions",
        headers={"Authorization": "Bearer {{api_key}}"},
    ),
    "groq": ProviderTemplate(
        id="groq",
        display_name="Groq",
        base_url="https://api.groq.com/openai",
        auth_type="api_key",
        models_endpoint="/v1/models",
        chat_endpoint="/v1/chat/completions",
        headers={"Authorization": "Bearer {{api_key}}"},
    ),
    "aws-bedrock": ProviderTemplate(
        id="aws-bedrock",
        display_name="AWS Bedrock",
        base_url="https://bedrock.{{region}}.amazonaws.com",
        auth_type="aws_sigv4",
        models_endpoint="/foundation-models",
        chat_endpoint="/model/{{model}}/invoke",
        supports_streaming=False,
    ),
    "google-gemini": ProviderTemplate(
        id="google-gemini",
        display_name="Google Gemini",
        base_url="https://generativelanguage.googleapis.com/v1beta",
        auth_type="api_key",
        models_endpoint="/models",
        chat_endpoint="/models/{{model}}:generateContent",
        supports_streaming=False,
    ),
    "google-vertex": ProviderTemplate(
        id="google-vertex",
        display_name="Google Vertex AI",
        base_url="https://{{location}}-aiplatform.googleapis.com/v1",
        auth_type="service_account_json",
        models_endpoint="/projects/{{project}}/locations/{{location}}/publishers/google/models",
        chat_endpoint="/projects/{{project}}/locations/{{location}}/publishers/google/models/{{model}}",
        supports_streaming=False,
    ),
}


def get_template_by_id(provider_id: str) -> Optional[ProviderTemplate]:
    return BUILTIN_TEMPLATES.get(provider_id)


def list_templates() -> List[ProviderTemplate]:
    return list(BUILTIN_TEMPLATES.values())
