"""
Client dispatch for fluent_http.

The Client merges its defaults into a RequestBuilder, builds the
request with a pooled codec, sends it through an ``httpx.AsyncClient``,
classifies the response and decodes it into the caller's targets.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import httpx
from typing_extensions import Self

from .codec import BodyCodec, BodyCodecPool, Outcome, Target, classify
from .codecs import BODY_CODEC_JSON
from .context import CancelFunc, Context
from .defaults import default_client
from .exceptions import ClassificationError, DecodeError, RequestCancelledError
from .headers import HeaderInput, Headers, basic_auth
from .request import PreparedRequest, RequestBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Result:
    """
    Outcome of ``Client.do``.

    ``outcome`` is None for a 204 response, which is never decoded.
    Exactly one of ``success`` and ``wrong`` is set otherwise,
    depending on how the response was classified.
    """

    response: httpx.Response
    body: bytes
    outcome: Optional[Outcome] = None
    success: Any = None
    wrong: Any = None

    @property
    def status_code(self) -> int:
        return self.response.status_code


class RawExchange:
    """
    Live response returned by ``Client.do_with_raw``.

    The body is not read. The caller owns the exchange and must call
    ``aclose`` (or use ``async with``), which cancels any derived
    deadline and drains and closes the body.
    """

    def __init__(self, prepared: PreparedRequest, response: httpx.Response) -> None:
        self.request = prepared.request
        self.context = prepared.context
        self.response = response
        self._cancel = prepared.cancel

    async def aread(self) -> bytes:
        """Read the whole body within the exchange's context."""
        return await self.context.run(self.response.aread())

    async def aclose(self) -> None:
        await _release(self.context, self._cancel, self.response)

    async def __aenter__(self) -> "RawExchange":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


class Client:
    """
    Fluent HTTP client.

    Base URL, default headers, default request timeout and default
    codec are configuration: set them up front and treat them as
    read-only while calls are in flight. Per-call state is never
    shared, so one Client can serve many concurrent tasks.
    """

    def __init__(self, transport: Optional[httpx.AsyncClient] = None) -> None:
        """
        Initialize the client.

        Args:
            transport: httpx client executing requests; a default one
                (owned and closed by this client) is created if omitted
        """
        self._base_url = ""
        self._headers = Headers()
        self._request_timeout: Optional[float] = None
        self._codec_pool: BodyCodecPool = BODY_CODEC_JSON
        self._owns_transport = transport is None
        self._transport = transport if transport is not None else default_client()

    def clone(self) -> "Client":
        """Copy the configuration; the transport is shared, not owned."""
        clone = Client(self._transport)
        clone._base_url = self._base_url
        clone._headers = self._headers.copy()
        clone._request_timeout = self._request_timeout
        clone._codec_pool = self._codec_pool
        return clone

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def transport(self) -> httpx.AsyncClient:
        return self._transport

    def with_body_codec(self, codec_pool: BodyCodecPool) -> Self:
        self._codec_pool = codec_pool
        return self

    def with_body_codec_json(self) -> Self:
        return self.with_body_codec(BODY_CODEC_JSON)

    def with_request_timeout(self, timeout: Optional[float]) -> Self:
        """Default timeout (seconds) for requests that do not set one."""
        self._request_timeout = timeout
        return self

    def with_transport(self, transport: httpx.AsyncClient) -> Self:
        self._transport = transport
        self._owns_transport = False
        return self

    def with_base_url(self, base_url: str) -> Self:
        self._base_url = base_url
        return self

    def with_headers(self, headers: HeaderInput) -> Self:
        self._headers = Headers(headers)
        return self

    def set_header(self, key: str, value: str) -> Self:
        self._headers.set(key, value)
        return self

    def add_header(self, key: str, value: str) -> Self:
        self._headers.add(key, value)
        return self

    def set_basic_auth(self, username: str, password: str) -> Self:
        return self.set_header("Authorization", "Basic " + basic_auth(username, password))

    async def do(
        self,
        builder: RequestBuilder,
        success: Target,
        wrong: Optional[Target] = None,
    ) -> Result:
        """Send ``builder`` with the client's default codec. See do_with_body_codec."""
        return await self.do_with_body_codec(self._codec_pool, builder, success, wrong)

    async def do_with_body_codec(
        self,
        codec_pool: BodyCodecPool,
        builder: RequestBuilder,
        success: Target,
        wrong: Optional[Target] = None,
    ) -> Result:
        """
        Perform one request/response cycle.

        Args:
            codec_pool: Pool of the codec used for this call
            builder: Request to send; consumed by the call
            success: Target for a successful response (mandatory)
            wrong: Target for a wrong or unclassified response

        Returns:
            The buffered response, its body and the decoded value

        Raises:
            ValueError: If ``success`` is None
            BuildError: If the request cannot be built
            ClassificationError: If the response is not successful and
                ``wrong`` is None
            DecodeError: If the body cannot be decoded into its target
            asyncio.TimeoutError: If the request deadline passes
            httpx.HTTPError: On transport failures
        """
        if success is None:
            raise ValueError("'success' must not be None")

        codec = codec_pool.acquire()
        try:
            prepared, response = await self._send(codec, builder)
            try:
                return await self._receive(codec, prepared, response, success, wrong)
            finally:
                await _release(prepared.context, prepared.cancel, response)
        finally:
            codec_pool.release(codec)

    async def do_with_raw(self, builder: RequestBuilder) -> RawExchange:
        """
        Send ``builder`` without reading, classifying or decoding the body.

        The returned exchange must be closed by the caller.
        """
        codec = self._codec_pool.acquire()
        try:
            prepared, response = await self._send(codec, builder)
        finally:
            self._codec_pool.release(codec)
        return RawExchange(prepared, response)

    async def aclose(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self._transport.aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def _send(
        self, codec: BodyCodec, builder: RequestBuilder
    ) -> Tuple[PreparedRequest, httpx.Response]:
        builder.merge_defaults(self._base_url, self._headers, self._request_timeout)
        prepared = builder.build(codec)
        request = prepared.request

        try:
            if codec.on_send is not None:
                codec.on_send(request)
            logger.debug(f"Sending {request.method} {request.url}")
            response = await prepared.context.run(
                self._transport.send(request, stream=True)
            )
        except BaseException:
            prepared.cancel()
            raise

        logger.debug(f"Received {response.status_code} from {request.url}")
        return prepared, response

    async def _receive(
        self,
        codec: BodyCodec,
        prepared: PreparedRequest,
        response: httpx.Response,
        success: Target,
        wrong: Optional[Target],
    ) -> Result:
        if codec.on_receive is not None:
            codec.on_receive(prepared.request, response)

        if response.status_code == httpx.codes.NO_CONTENT:
            return Result(response, b"")

        body = await prepared.context.run(response.aread())
        outcome = classify(codec, response)
        logger.debug(f"Response {response.status_code} classified as {outcome.value}")

        if outcome is Outcome.SUCCESS:
            value = _decode(codec.decode, body, success, response)
            return Result(response, body, outcome, success=value)

        if wrong is None:
            raise ClassificationError(
                _describe(response),
                url=str(response.request.url),
                status_code=response.status_code,
                response=response,
                body=body,
            )

        decode = codec.decode
        if outcome is Outcome.WRONG and codec.decode_wrong is not None:
            decode = codec.decode_wrong
        value = _decode(decode, body, wrong, response)
        return Result(response, body, outcome, wrong=value)


def _describe(response: httpx.Response) -> str:
    status = response.status_code
    reason = httpx.codes.get_reason_phrase(status)
    return f"unexpected response: URL: {response.request.url} ({status} {reason})"


def _decode(decode, body: bytes, target: Target, response: httpx.Response) -> Any:
    try:
        return decode(body, target)
    except Exception as e:
        raise DecodeError(
            f"{_describe(response)}: {e}",
            cause=e,
            url=str(response.request.url),
            status_code=response.status_code,
            response=response,
            body=body,
        ) from e


async def _drain(response: httpx.Response) -> None:
    async for _ in response.aiter_raw():
        pass


async def _release(context: Context, cancel: CancelFunc, response: httpx.Response) -> None:
    """Drain and close the body, then cancel the derived scope."""
    try:
        if not response.is_closed and not response.is_stream_consumed and not context.done:
            await context.run(_drain(response))
    except (httpx.HTTPError, asyncio.TimeoutError, RequestCancelledError) as e:
        logger.warning(f"Error draining response body: {e}")
    finally:
        await response.aclose()
        cancel()
        logger.debug(f"Released response from {response.request.url}")
