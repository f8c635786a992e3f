"""Test helpers for mocked provider HTTP traffic."""

import json
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional

import httpx


class RecordingHandler:
    """MockTransport handler that keeps every request it answered."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self._handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


async def _byte_stream(parts: List[str]) -> AsyncIterator[bytes]:
    for part in parts:
        yield part.encode("utf-8")


def sse_response(parts: Iterable[str], status_code: int = 200) -> httpx.Response:
    """Streaming response whose body arrives in the given fragments."""
    return httpx.Response(
        status_code,
        headers={"Content-Type": "text/event-stream"},
        content=_byte_stream(list(parts)),
    )


class TrackedByteStream(httpx.AsyncByteStream):
    """
    Response body that records when httpx closes it.

    With ``fail_after`` set, the body raises ``httpx.ReadError`` after that
    many fragments, like a connection dropped mid-transfer.
    """

    def __init__(self, parts: Iterable[str], fail_after: Optional[int] = None):
        self._parts = list(parts)
        self._fail_after = fail_after
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for index, part in enumerate(self._parts):
            if self._fail_after is not None and index >= self._fail_after:
                raise httpx.ReadError("connection reset by peer")
            yield part.encode("utf-8")

    async def aclose(self) -> None:
        self.closed = True


def tracked_sse_response(body: TrackedByteStream, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"Content-Type": "text/event-stream"},
        stream=body,
    )


def sse_event(payload: Any, event: Optional[str] = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {json.dumps(payload)}\n\n"


async def collect(iterator: AsyncIterator[Any]) -> List[Any]:
    return [item async for item in iterator]
