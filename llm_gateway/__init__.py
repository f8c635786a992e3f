"""
LLM Gateway.

OpenAI-compatible gateway core: provider adapters, stream
normalization, adapter registry and model routing.
"""

__version__ = "0.1.0"
