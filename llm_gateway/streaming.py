"""
Streaming normalization.

Maps provider stream events (OpenAI-style SSE deltas and Anthropic's
typed events) to unified ChatCompletionChunk objects, and formats the
SSE wire output returned to clients.
"""

import json
import secrets
import time
from contextlib import aclosing
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Dict, List, Literal, Mapping, Optional, Union

import structlog

from llm_gateway.schemas import (
    ChatCompletionChunk,
    ChatCompletionChunkChoice,
    ChunkDelta,
)

logger = structlog.get_logger(__name__)

StreamingProvider = Literal["openai", "anthropic", "azure", "mistral", "groq", "custom"]

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_id() -> str:
    """Generate a chat completion id: chatcmpl-<epoch ms>-<7 base36 chars>."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"chatcmpl-{int(time.time() * 1000)}-{suffix}"


# =============================================================================
# Finish reasons
# =============================================================================


def map_openai_finish_reason(reason: Optional[str]) -> Optional[str]:
    """OpenAI-family finish reasons: stop and length pass through, anything else is null."""
    if reason in ("stop", "length"):
        return reason
    return None


def map_anthropic_stop_reason(reason: Optional[str]) -> Optional[str]:
    """Anthropic (and Bedrock Claude) stop reasons."""
    if reason == "end_turn":
        return "stop"
    if reason == "max_tokens":
        return "length"
    return None


# =============================================================================
# Chunk normalization
# =============================================================================


def _chunk(
    chunk_id: str,
    created: int,
    model: str,
    delta: ChunkDelta,
    finish_reason: Optional[str] = None,
    index: int = 0,
) -> ChatCompletionChunk:
    return ChatCompletionChunk(
        id=chunk_id,
        created=created,
        model=model,
        choices=[ChatCompletionChunkChoice(index=index, delta=delta, finish_reason=finish_reason)],
    )


def normalize_openai_chunk(chunk: Mapping[str, Any], unified_model_id: str) -> Optional[ChatCompletionChunk]:
    """
    Map an OpenAI-style stream chunk to a unified chunk.

    id and created are copied, model is replaced by the unified id, and
    choices[0] index/delta/finish_reason are copied as-is. Chunks without
    choices produce nothing.

    Raises:
        pydantic.ValidationError: If the chunk fields have the wrong types
    """
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None

    choice = choices[0]
    if not isinstance(choice, Mapping):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, Mapping):
        delta = {}
    return _chunk(
        chunk_id=chunk.get("id") or generate_id(),
        created=chunk.get("created") or int(time.time()),
        model=unified_model_id,
        delta=ChunkDelta(role=delta.get("role"), content=delta.get("content")),
        finish_reason=choice.get("finish_reason"),
        index=choice.get("index") or 0,
    )


def normalize_azure_chunk(chunk: Mapping[str, Any], unified_model_id: str) -> Optional[ChatCompletionChunk]:
    """Azure streams the OpenAI format unchanged."""
    return normalize_openai_chunk(chunk, unified_model_id)


def normalize_anthropic_event(
    event: Mapping[str, Any],
    message_id: Optional[str],
    unified_model_id: str,
) -> Optional[ChatCompletionChunk]:
    """
    Map one Anthropic stream event to zero or one unified chunk.

    Args:
        event: Parsed event payload
        message_id: Id captured from message_start; generated when missing
        unified_model_id: Model id reported to the client

    Returns:
        A chunk for content_block_start, text content_block_delta and
        message_delta with a stop_reason; None for every other event
    """
    created = int(time.time())
    chunk_id = message_id or generate_id()
    event_type = event.get("type")
    delta = event.get("delta")
    if not isinstance(delta, Mapping):
        delta = {}

    if event_type == "content_block_delta" and delta.get("text"):
        return _chunk(chunk_id, created, unified_model_id, ChunkDelta(content=delta["text"]))

    if event_type == "message_delta" and delta.get("stop_reason"):
        return _chunk(
            chunk_id,
            created,
            unified_model_id,
            ChunkDelta(),
            finish_reason=map_anthropic_stop_reason(delta["stop_reason"]),
        )

    if event_type == "content_block_start":
        return _chunk(chunk_id, created, unified_model_id, ChunkDelta(role="assistant", content=""))

    return None


def normalize_provider_chunk(
    raw_chunk: Any,
    provider: str,
    unified_model_id: str,
    message_id: Optional[str] = None,
) -> Optional[ChatCompletionChunk]:
    """Dispatch a parsed stream payload to the provider's normalizer."""
    if not isinstance(raw_chunk, Mapping):
        return None

    if provider in ("openai", "mistral", "groq", "custom"):
        return normalize_openai_chunk(raw_chunk, unified_model_id)
    if provider == "anthropic":
        return normalize_anthropic_event(raw_chunk, message_id or generate_id(), unified_model_id)
    if provider == "azure":
        return normalize_azure_chunk(raw_chunk, unified_model_id)
    return None


def is_valid_openai_chunk(chunk: Union[ChatCompletionChunk, Mapping[str, Any], Any]) -> bool:
    """Structural check of the OpenAI chunk wire shape."""
    if isinstance(chunk, ChatCompletionChunk):
        chunk = chunk.model_dump()
    if not isinstance(chunk, Mapping):
        return False
    if not isinstance(chunk.get("id"), str):
        return False
    if chunk.get("object") != "chat.completion.chunk":
        return False
    created = chunk.get("created")
    if isinstance(created, bool) or not isinstance(created, (int, float)):
        return False
    if not isinstance(chunk.get("model"), str):
        return False
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return False
    for choice in choices:
        if not isinstance(choice, Mapping):
            return False
        index = choice.get("index")
        if isinstance(index, bool) or not isinstance(index, int):
            return False
        if not isinstance(choice.get("delta"), Mapping):
            return False
    return True


# =============================================================================
# SSE parsing and formatting
# =============================================================================


def parse_sse_data(text: str) -> List[str]:
    """Return the trimmed payloads of the ``data: `` lines in a decoded fragment."""
    payloads = []
    for line in text.split("\n"):
        if line.startswith("data: "):
            data = line[6:].strip()
            if data and data != "[DONE]":
                payloads.append(data)
    return payloads


def load_sse_payload(data: str) -> Optional[Dict[str, Any]]:
    """Decode one SSE payload. Malformed or non-object payloads yield None."""
    try:
        parsed = json.loads(data)
    except ValueError:
        logger.debug("Dropping malformed stream payload", size=len(data))
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


async def iter_sse_payloads(
    fragments: AsyncIterator[str],
    retain_partial_lines: bool = False,
) -> AsyncIterator[str]:
    """
    Assemble SSE data payloads from decoded text fragments.

    Each fragment is appended to a line buffer and every data line in it is
    emitted. Unless retain_partial_lines is set, the buffer is cleared after
    each fragment, so a line split across two reads is not reassembled.
    The source iterator is closed on every exit path.
    """
    buffer = ""
    async with aclosing(fragments) as stream:
        async for fragment in stream:
            buffer += fragment
            lines = buffer.split("\n")
            buffer = lines.pop() if retain_partial_lines else ""
            for payload in parse_sse_data("\n".join(lines)):
                yield payload

    if buffer:
        for payload in parse_sse_data(buffer):
            yield payload


def format_sse_chunk(chunk: ChatCompletionChunk) -> str:
    """Render a chunk as one SSE event."""
    return f"data: {chunk.model_dump_json()}\n\n"


def format_sse_done() -> str:
    return "data: [DONE]\n\n"


# =============================================================================
# Streaming state
# =============================================================================


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StreamingState:
    """Progress of one streaming response."""

    message_id: str
    provider: str
    start_time: int
    last_chunk_time: int
    chunks_received: int = 0
    is_complete: bool = False
    error: Optional[str] = None


def create_streaming_state(provider: str) -> StreamingState:
    now = _now_ms()
    return StreamingState(
        message_id=generate_id(),
        provider=provider,
        start_time=now,
        last_chunk_time=now,
    )


def update_streaming_state(state: StreamingState) -> StreamingState:
    """Record one received chunk."""
    return replace(state, chunks_received=state.chunks_received + 1, last_chunk_time=_now_ms())


def complete_streaming_state(state: StreamingState, error: Optional[str] = None) -> StreamingState:
    return replace(state, is_complete=True, error=error)


def has_streaming_timed_out(state: StreamingState, timeout_ms: int = 30000) -> bool:
    """True when no chunk arrived for longer than timeout_ms."""
    return _now_ms() - state.last_chunk_time > timeout_ms
