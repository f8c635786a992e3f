"""
Gateway Data Plane Router.

OpenAI-compatible endpoints. Requests are resolved to a provider adapter
and the caller team's credentials by the ModelRouter, then executed by the
adapter; all responses and errors use the OpenAI wire format.

Endpoints:
- POST /v1/chat/completions - Chat completions (streaming supported)
- GET /v1/models - List catalogued models, or discover a provider's models
"""

import json
from contextlib import aclosing
from typing import AsyncIterator, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from llm_gateway.catalog import InMemoryModelCatalog
from llm_gateway.core.config import Settings
from llm_gateway.errors import AdapterError, ModelResolutionError, UnsupportedOperationError
from llm_gateway.routing import ModelRouter
from llm_gateway.schemas import ChatCompletionChunk, ChatCompletionRequest
from llm_gateway.streaming import (
    complete_streaming_state,
    create_streaming_state,
    format_sse_chunk,
    format_sse_done,
    has_streaming_timed_out,
    update_streaming_state,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["gateway"])


RESOLUTION_ERROR_STATUS: Dict[str, tuple] = {
    "model_not_found": (404, "not_found_error"),
    "provider_not_found": (404, "not_found_error"),
    "no_credentials": (401, "authentication_error"),
    "no_adapter": (500, "internal_error"),
}


class GatewayRequestError(Exception):
    """Client error raised before routing, rendered as an OpenAI error."""

    def __init__(self, message: str, status_code: int = 400, error_type: str = "invalid_request_error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type

    def to_openai_error(self) -> Dict:
        return {"error": {"message": self.message, "type": self.error_type}}


# =============================================================================
# Dependencies
# =============================================================================

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_model_router(request: Request) -> ModelRouter:
    return request.app.state.model_router


def get_model_catalog(request: Request) -> InMemoryModelCatalog:
    return request.app.state.model_catalog


async def get_team_id(request: Request, settings: Settings = Depends(get_app_settings)) -> str:
    """Team id from the configured team header."""
    header = settings.gateway.team_header
    team_id = request.headers.get(header)
    if not team_id:
        raise GatewayRequestError(f"Missing '{header}' header", status_code=401, error_type="authentication_error")
    return team_id


# =============================================================================
# Helper Functions
# =============================================================================

def error_response(status_code: int, body: Dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body)


def resolution_error_response(e: ModelResolutionError) -> JSONResponse:
    status_code, error_type = RESOLUTION_ERROR_STATUS.get(e.code, (500, "internal_error"))
    return error_response(status_code, {
        "error": {"message": e.message, "type": error_type, "code": e.code}
    })


def stream_error_event(e: AdapterError) -> str:
    return f"data: {json.dumps(e.to_openai_error())}\n\n"


async def stream_response(
    first: Optional[ChatCompletionChunk],
    chunks: AsyncIterator[ChatCompletionChunk],
    provider_id: str,
    timeout_ms: int,
) -> AsyncIterator[str]:
    """
    Serialize normalized chunks as SSE frames, ending with ``data: [DONE]``.

    ``first`` was already pulled from ``chunks`` so that upstream status
    errors surface as a regular HTTP error response. A failure after the
    response started is sent as a final error event instead of ``[DONE]``.
    """
    state = create_streaming_state(provider_id)
    async with aclosing(chunks) as stream:
        try:
            if first is not None:
                state = update_streaming_state(state)
                yield format_sse_chunk(first)
            async for chunk in stream:
                if has_streaming_timed_out(state, timeout_ms):
                    logger.warning(
                        "Stream stalled",
                        provider=provider_id,
                        message_id=state.message_id,
                        chunks_received=state.chunks_received,
                        timeout_ms=timeout_ms,
                    )
                state = update_streaming_state(state)
                yield format_sse_chunk(chunk)
        except AdapterError as e:
            state = complete_streaming_state(state, error=e.message)
            logger.error(
                "Stream failed",
                provider=provider_id,
                message_id=state.message_id,
                chunks_received=state.chunks_received,
                error=e.message,
            )
            yield stream_error_event(e)
            return

    state = complete_streaming_state(state)
    logger.info(
        "Stream completed",
        provider=provider_id,
        message_id=state.message_id,
        chunks_received=state.chunks_received,
    )
    yield format_sse_done()


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/chat/completions")
async def chat_completions(
    body: ChatCompletionRequest,
    team_id: str = Depends(get_team_id),
    model_router: ModelRouter = Depends(get_model_router),
    settings: Settings = Depends(get_app_settings),
):
    """
    Create a chat completion.

    Compatible with OpenAI's /v1/chat/completions endpoint.
    Supports streaming via SSE when stream=true.
    """
    try:
        resolution = await model_router.resolve_model_for_routing(body.model, team_id)
    except ModelResolutionError as e:
        logger.info("Model resolution failed", model=body.model, team_id=team_id, code=e.code)
        return resolution_error_response(e)

    adapter = resolution.adapter
    # Aliases are rewritten to the unified id the adapter strips to the provider model
    request = body.model_copy(update={"model": resolution.model.unified_id})

    try:
        if body.stream:
            if not adapter.template.supports_streaming:
                raise UnsupportedOperationError(
                    f"Streaming is not supported for provider '{adapter.provider_id}'",
                    provider_id=adapter.provider_id,
                )
            chunks = adapter.chat_completion_stream(request, resolution.credentials)
            try:
                first = await chunks.__anext__()
            except StopAsyncIteration:
                first = None
            return StreamingResponse(
                stream_response(first, chunks, adapter.provider_id, settings.gateway.stream_timeout_ms),
                media_type="text/event-stream",
                headers={
                    "Cache-Control": "no-cache",
                    "Connection": "keep-alive",
                },
            )

        response = await adapter.chat_completion(request, resolution.credentials)
        return JSONResponse(content=response.model_dump())

    except AdapterError as e:
        logger.warning(
            "Provider request failed",
            provider=adapter.provider_id,
            model=body.model,
            error_type=e.error_type,
            status_code=e.status_code,
            error=e.message,
        )
        return error_response(e.status_code, e.to_openai_error())


@router.get("/models")
async def list_models(
    provider: Optional[str] = None,
    team_id: str = Depends(get_team_id),
    model_router: ModelRouter = Depends(get_model_router),
    catalog: InMemoryModelCatalog = Depends(get_model_catalog),
):
    """
    List available models.

    With ``provider`` set, the provider's models are discovered with the
    team's credentials and stored in the catalog first.
    """
    if provider:
        try:
            result = await model_router.fetch_models_for_provider(team_id, provider)
        except ModelResolutionError as e:
            return resolution_error_response(e)
        if not result.success:
            return error_response(502, {
                "error": {"message": result.error or "Failed to fetch models", "type": "provider_error"}
            })
        records = result.models
    else:
        records = catalog.list_models()

    return {
        "object": "list",
        "data": [
            {
                "id": record.unified_id,
                "object": "model",
                "owned_by": record.provider_id,
                "display_name": record.display_name,
                "context_length": record.context_length,
            }
            for record in records
        ],
    }
