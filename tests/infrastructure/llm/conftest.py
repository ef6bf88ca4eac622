"""Common fixtures for LLM infrastructure tests."""

import json
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from qodecore.config.models import TimeoutConfig
from qodecore.domain.entities import StreamEvent


@pytest.fixture
def timeouts() -> TimeoutConfig:
    """Short timeouts so stalled streams fail fast."""
    return TimeoutConfig(connect_seconds=1.0, idle_seconds=0.2)


@pytest.fixture
def requests_seen() -> list[httpx.Request]:
    """Requests received by the mock transport."""
    return []


@pytest.fixture
def make_client(requests_seen: list[httpx.Request]):
    """Create an AsyncClient answering every request with a handler."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        def record(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(record))

    return factory


@pytest.fixture
def ndjson() -> Callable[..., bytes]:
    """Encode objects as NDJSON."""

    def encode(*objects: object) -> bytes:
        return b"".join(json.dumps(obj).encode() + b"\n" for obj in objects)

    return encode


@pytest.fixture
def sse() -> Callable[..., bytes]:
    """Encode objects as SSE data frames. Strings are sent verbatim."""

    def encode(*objects: object) -> bytes:
        frames = []
        for obj in objects:
            data = obj if isinstance(obj, str) else json.dumps(obj)
            frames.append(f"data: {data}\n\n".encode())
        return b"".join(frames)

    return encode


@pytest.fixture
def collect():
    """Drain an event stream into a list."""

    async def drain(events: AsyncIterator[StreamEvent]) -> list[StreamEvent]:
        return [event async for event in events]

    return drain
