"""Tests for the Anthropic Messages API adapter."""

from contextlib import aclosing

import httpx
import pytest

from llm_gateway.adapters.anthropic import ANTHROPIC_MODELS, AnthropicAdapter, split_system_message
from llm_gateway.errors import ProviderHTTPError
from llm_gateway.schemas import ChatMessage
from tests.helpers import TrackedByteStream, collect, sse_event, sse_response, tracked_sse_response

MESSAGES = [
    {"role": "system", "content": "Be terse."},
    {"role": "user", "content": "Hi"},
    {"role": "system", "content": "Ignored."},
    {"role": "assistant", "content": "Hello"},
    {"role": "user", "content": "Bye"},
]


def stream_events():
    return [
        sse_event({"type": "message_start", "message": {"id": "msg_01", "model": "claude-3-haiku"}}, "message_start"),
        sse_event({"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
                  "content_block_start"),
        sse_event({"type": "ping"}, "ping"),
        sse_event({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hel"}},
                  "content_block_delta"),
        sse_event({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "lo"}},
                  "content_block_delta"),
        sse_event({"type": "content_block_stop", "index": 0}, "content_block_stop"),
        sse_event({"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 2}},
                  "message_delta"),
        sse_event({"type": "message_stop"}, "message_stop"),
    ]


class TestSplitSystemMessage:
    def test_first_system_message_wins(self):
        messages = [ChatMessage(**message) for message in MESSAGES]

        system, turns = split_system_message(messages)

        assert system == "Be terse."
        assert turns == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
            {"role": "user", "content": "Bye"},
        ]

    def test_no_system_message(self):
        system, turns = split_system_message([ChatMessage(role="user", content="Hi")])
        assert system is None
        assert turns == [{"role": "user", "content": "Hi"}]


class TestAnthropicAdapter:
    def test_transform_request(self, make_request):
        body = AnthropicAdapter().transform_request(
            make_request("anthropic:claude-3-haiku-20240307", messages=MESSAGES, stop="STOP", temperature=0.5)
        )

        assert body["model"] == "claude-3-haiku-20240307"
        assert body["system"] == "Be terse."
        assert body["max_tokens"] == 4096
        assert body["stop_sequences"] == ["STOP"]
        assert body["temperature"] == 0.5
        assert len(body["messages"]) == 3
        assert "stream" not in body

    def test_transform_request_keeps_explicit_max_tokens(self, make_request):
        body = AnthropicAdapter().transform_request(make_request("anthropic:claude", max_tokens=0, stop=["a", "b"]))
        assert body["max_tokens"] == 0
        assert body["stop_sequences"] == ["a", "b"]
        assert "system" not in body

    def test_transform_response(self):
        response = AnthropicAdapter().transform_response(
            {
                "id": "msg_01",
                "content": [
                    {"type": "text", "text": "Hello "},
                    {"type": "tool_use", "id": "t1"},
                    {"type": "text", "text": "world"},
                ],
                "stop_reason": "max_tokens",
                "usage": {"input_tokens": 10, "output_tokens": 4},
            },
            "anthropic:claude-3-haiku-20240307",
        )

        assert response.id == "msg_01"
        assert response.choices[0].message.content == "Hello world"
        assert response.choices[0].finish_reason == "length"
        assert response.usage.prompt_tokens == 10
        assert response.usage.completion_tokens == 4
        assert response.usage.total_tokens == 14

    def test_transform_response_unknown_stop_reason(self):
        response = AnthropicAdapter().transform_response(
            {"id": "msg_02", "content": [], "stop_reason": "stop_sequence"},
            "anthropic:claude",
        )
        assert response.choices[0].finish_reason is None
        assert response.choices[0].message.content == ""

    @pytest.mark.asyncio
    async def test_list_models_is_static(self, api_key_credentials):
        models = await AnthropicAdapter().list_models(api_key_credentials)

        assert [model.id for model in models] == [model.id for model in ANTHROPIC_MODELS]
        assert all(model.context_length == 200000 for model in models)

    @pytest.mark.asyncio
    async def test_chat_completion_headers(self, mock_http, make_request, api_key_credentials):
        client, recorder = mock_http(lambda request: httpx.Response(200, json={
            "id": "msg_01",
            "content": [{"type": "text", "text": "Hi"}],
            "stop_reason": "end_turn",
            "usage": {"input_tokens": 1, "output_tokens": 1},
        }))

        response = await AnthropicAdapter(http_client=client).chat_completion(
            make_request("anthropic:claude-3-haiku-20240307"), api_key_credentials
        )

        assert response.choices[0].finish_reason == "stop"
        assert str(recorder.last.url) == "https://api.anthropic.com/v1/messages"
        assert recorder.last.headers["x-api-key"] == "sk-test"
        assert recorder.last.headers["anthropic-version"] == "2023-06-01"
        assert recorder.last_json()["stream"] is False

    @pytest.mark.asyncio
    async def test_stream_events(self, mock_http, make_request, api_key_credentials):
        client, recorder = mock_http(lambda request: sse_response(stream_events()))

        chunks = await collect(AnthropicAdapter(http_client=client).chat_completion_stream(
            make_request("anthropic:claude-3-haiku-20240307"), api_key_credentials
        ))

        assert [chunk.choices[0].delta.content for chunk in chunks] == ["", "Hel", "lo", None]
        assert chunks[0].choices[0].delta.role == "assistant"
        assert chunks[-1].choices[0].finish_reason == "stop"
        assert all(chunk.id == "msg_01" for chunk in chunks)
        assert all(chunk.model == "anthropic:claude-3-haiku-20240307" for chunk in chunks)
        assert recorder.last_json()["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_reassembles_lines_split_across_reads(self, mock_http, make_request, api_key_credentials):
        body = "".join(stream_events())
        fragments = [body[i:i + 37] for i in range(0, len(body), 37)]
        client, _ = mock_http(lambda request: sse_response(fragments))

        chunks = await collect(AnthropicAdapter(http_client=client).chat_completion_stream(
            make_request("anthropic:claude"), api_key_credentials
        ))

        assert "".join(chunk.choices[0].delta.content or "" for chunk in chunks) == "Hello"
        assert len(chunks) == 4

    @pytest.mark.asyncio
    async def test_stream_without_message_start_generates_one_id(self, mock_http, make_request, api_key_credentials):
        events = [event for event in stream_events() if "message_start" not in event]
        client, _ = mock_http(lambda request: sse_response(events))

        chunks = await collect(AnthropicAdapter(http_client=client).chat_completion_stream(
            make_request("anthropic:claude"), api_key_credentials
        ))

        assert len({chunk.id for chunk in chunks}) == 1
        assert chunks[0].id.startswith("chatcmpl-")

    @pytest.mark.asyncio
    async def test_stream_abandoned_after_first_chunk_releases_upstream(
        self, mock_http, make_request, api_key_credentials
    ):
        body = TrackedByteStream(stream_events())
        client, _ = mock_http(lambda request: tracked_sse_response(body))
        adapter = AnthropicAdapter(http_client=client)

        chunks = adapter.chat_completion_stream(make_request("anthropic:claude"), api_key_credentials)
        received = []
        async with aclosing(chunks) as stream:
            async for chunk in stream:
                received.append(chunk)
                break

        assert len(received) == 1
        assert received[0].choices[0].delta.role == "assistant"
        assert body.closed is True

    @pytest.mark.asyncio
    async def test_stream_error_status(self, mock_http, make_request, api_key_credentials):
        client, _ = mock_http(lambda request: httpx.Response(401, text='{"error": "invalid x-api-key"}'))

        with pytest.raises(ProviderHTTPError) as exc_info:
            await collect(AnthropicAdapter(http_client=client).chat_completion_stream(
                make_request("anthropic:claude"), api_key_credentials
            ))

        assert exc_info.value.upstream_status == 401

    @pytest.mark.asyncio
    async def test_validate_credentials(self, mock_http, api_key_credentials):
        client, recorder = mock_http(lambda request: httpx.Response(200, json={}))
        assert await AnthropicAdapter(http_client=client).validate_credentials(api_key_credentials) is True
        assert recorder.last_json()["max_tokens"] == 1

        client, _ = mock_http(lambda request: httpx.Response(401, json={}))
        assert await AnthropicAdapter(http_client=client).validate_credentials(api_key_credentials) is False

    @pytest.mark.asyncio
    async def test_validate_credentials_network_failure(self, mock_http, api_key_credentials):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = mock_http(refuse)
        assert await AnthropicAdapter(http_client=client).validate_credentials(api_key_credentials) is False
