"""
HTTP API.

OpenAI-compatible data plane endpoints served under /v1.
"""

from llm_gateway.api.openai_compat import GatewayRequestError, router

__all__ = [
    "GatewayRequestError",
    "router",
]
