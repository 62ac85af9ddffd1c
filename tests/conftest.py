"""
Pytest configuration for fluent_http tests.

This file contains shared fixtures and test transports
for all tests in the project.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from fluent_http import BodyCodec, BodyCodecPool, Client

Responder = Callable[[httpx.Request], Tuple[int, Dict[str, str], bytes]]


class TrackedStream(httpx.AsyncByteStream):
    """Response body stream that reports when it is closed."""

    def __init__(self, transport: "AccountingTransport", chunks: List[bytes], delay: float) -> None:
        self._transport = transport
        self._chunks = chunks
        self._delay = delay
        self.closed = False

    async def __aiter__(self):
        for chunk in self._chunks:
            if self._delay:
                await asyncio.sleep(self._delay)
            yield chunk

    async def aclose(self) -> None:
        if not self.closed:
            self.closed = True
            self._transport.open_streams -= 1


class AccountingTransport(httpx.AsyncBaseTransport):
    """
    Test transport counting in-flight requests and open response bodies.

    ``response_delay`` stalls before the response headers are returned,
    ``chunk_delay`` stalls before each body chunk.
    """

    def __init__(
        self,
        status_code: int = 200,
        body: bytes = b"{}",
        headers: Optional[Dict[str, str]] = None,
        response_delay: float = 0.0,
        chunk_delay: float = 0.0,
        responder: Optional[Responder] = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.headers = headers if headers is not None else {"Content-Type": "application/json"}
        self.response_delay = response_delay
        self.chunk_delay = chunk_delay
        self.responder = responder

        self.requests: List[httpx.Request] = []
        self.streams: List[TrackedStream] = []
        self.in_flight = 0
        self.open_streams = 0

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.in_flight += 1
        try:
            self.requests.append(request)
            if self.response_delay:
                await asyncio.sleep(self.response_delay)

            if self.responder is not None:
                status_code, headers, body = self.responder(request)
            else:
                status_code, headers, body = self.status_code, self.headers, self.body

            stream = TrackedStream(self, [body] if body else [], self.chunk_delay)
            self.streams.append(stream)
            self.open_streams += 1
            return httpx.Response(status_code, headers=headers, stream=stream)
        finally:
            self.in_flight -= 1


class FakeCodec(BodyCodec):
    """Codec built from plain functions, with no optional capabilities."""

    def __init__(
        self,
        encode: Optional[Callable[[Any], bytes]] = None,
        decode: Optional[Callable[[bytes, Any], Any]] = None,
    ) -> None:
        super().__init__()
        self._encode = encode or (lambda body: b"")
        self._decode = decode or (lambda data, target: json.loads(data))

    def encode(self, body: Any) -> bytes:
        return self._encode(body)

    def decode(self, data: bytes, target: Any) -> Any:
        return self._decode(data, target)


def json_response(status_code: int, document: Any) -> Tuple[int, Dict[str, str], bytes]:
    """Responder result carrying a JSON document."""
    return status_code, {"Content-Type": "application/json"}, json.dumps(document).encode()


@pytest.fixture
def transport():
    """Create an accounting transport answering 200 with an empty object."""
    return AccountingTransport()


@pytest.fixture
def make_client():
    """Create clients on top of a test transport."""
    def _create_client(transport: httpx.AsyncBaseTransport, base_url: str = "https://api.example.com") -> Client:
        return Client(httpx.AsyncClient(transport=transport)).with_base_url(base_url)
    return _create_client


@pytest.fixture
def fake_codec_pool():
    """Create pools handing out a single preconfigured FakeCodec."""
    def _create_pool(codec: Optional[BodyCodec] = None) -> BodyCodecPool:
        instance = codec if codec is not None else FakeCodec()
        return BodyCodecPool(lambda: instance)
    return _create_pool


@pytest.fixture
def sample_headers():
    """Sample client headers for testing."""
    return {
        "X-Client": "fluent_http/0.1.0",
        "Accept-Language": "en",
        "x-trace": ["a", "b"],
    }


@pytest.fixture
def sample_form():
    """Sample form-urlencoded body."""
    return {"name": "hi", "tel": "123", "email": "a@b.com"}
