"""Shared fixtures."""

from typing import Any, Callable

import httpx
import pytest

from llm_gateway.schemas import ChatCompletionRequest, DecryptedCredentials
from tests.helpers import RecordingHandler


@pytest.fixture
def mock_http():
    """Build an AsyncClient answering through a RecordingHandler."""

    def _factory(handler: Callable[[httpx.Request], httpx.Response]):
        recorder = RecordingHandler(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        return client, recorder

    return _factory


@pytest.fixture
def make_request():
    def _factory(model: str = "openai:gpt-4o", **kwargs: Any) -> ChatCompletionRequest:
        messages = kwargs.pop("messages", None) or [{"role": "user", "content": "Hello"}]
        return ChatCompletionRequest(model=model, messages=messages, **kwargs)

    return _factory


@pytest.fixture
def api_key_credentials() -> DecryptedCredentials:
    return DecryptedCredentials(api_key="sk-test")
