"""
Fluent request builder for fluent_http.

A RequestBuilder accumulates method, path elements, query, headers,
cancellation settings and body, and resolves them into an
``httpx.Request`` exactly once. Builder state is pooled; the builder
itself is a handle that is consumed by ``build``.
"""

import logging
from enum import Enum
from typing import Any, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union
from urllib.parse import urlunsplit

import httpx
from typing_extensions import Self

from .codec import BodyCodec
from .context import CancelFunc, Context
from .exceptions import BuilderReusedError, BuildError, EmptyURLError
from .headers import HeaderInput, Headers, basic_auth
from .pool import Pool
from .urls import QueryValues, encode_query, join_path, parse_query, parse_url

logger = logging.getLogger(__name__)

QueryInput = Mapping[str, Union[str, Sequence[str]]]

_NO_BODY = object()


class BuilderState(Enum):
    """Lifecycle of a RequestBuilder."""
    OPEN = "open"
    CONSUMED = "consumed"


class PreparedRequest(NamedTuple):
    """Result of ``RequestBuilder.build``."""
    request: httpx.Request
    context: Context
    cancel: CancelFunc


class _BuilderFields:
    """Pooled per-request state behind a RequestBuilder."""

    def __init__(self) -> None:
        self.method = ""
        self.base_url = ""
        self.path_elements: List[str] = []
        self.headers = Headers()
        self.query: QueryValues = {}
        self.body: Any = _NO_BODY
        self.context: Optional[Context] = None
        self.timeout: Optional[float] = None

    def reset(self) -> None:
        self.method = ""
        self.base_url = ""
        self.path_elements = []
        self.headers.clear()
        self.query = {}
        self.body = _NO_BODY
        self.context = None
        self.timeout = None


_FIELDS_POOL: Pool[_BuilderFields] = Pool(_BuilderFields, reset=_BuilderFields.reset)


class RequestBuilder:
    """
    One-shot accumulator of request parameters.

    All setters return the builder for chaining. After ``build`` the
    builder is consumed: any further use raises BuilderReusedError.
    """

    def __init__(self, method: str) -> None:
        self._fields: Optional[_BuilderFields] = _FIELDS_POOL.acquire()
        self._fields.method = method.upper()

    @property
    def state(self) -> BuilderState:
        return BuilderState.OPEN if self._fields is not None else BuilderState.CONSUMED

    @property
    def method(self) -> str:
        return self._open().method

    @property
    def headers(self) -> Headers:
        return self._open().headers

    def with_context(self, context: Context) -> Self:
        """Use ``context`` as the parent scope of the call."""
        self._open().context = context
        return self

    def with_timeout(self, timeout: Optional[float]) -> Self:
        """Bound the call to ``timeout`` seconds (None or <= 0 for no timeout)."""
        self._open().timeout = timeout if timeout and timeout > 0 else None
        return self

    def with_base_url(self, base_url: str) -> Self:
        """Override the client's base URL for this request."""
        self._open().base_url = base_url
        return self

    def with_headers(self, headers: HeaderInput) -> Self:
        """Replace all request headers with a copy of ``headers``."""
        self._open().headers = Headers(headers)
        return self

    def set_header(self, key: str, value: str) -> Self:
        self._open().headers.set(key, value)
        return self

    def add_header(self, key: str, value: str) -> Self:
        self._open().headers.add(key, value)
        return self

    def set_basic_auth(self, username: str, password: str) -> Self:
        return self.set_header("Authorization", "Basic " + basic_auth(username, password))

    def with_query(self, query: QueryInput) -> Self:
        """Replace all query parameters with a copy of ``query``."""
        self._open().query = {
            key: [value] if isinstance(value, str) else list(value)
            for key, value in query.items()
        }
        return self

    def set_query(self, key: str, value: str) -> Self:
        self._open().query[key] = [value]
        return self

    def add_query(self, key: str, value: str) -> Self:
        self._open().query.setdefault(key, []).append(value)
        return self

    def path(self, *elements: str) -> Self:
        """
        Set the path elements.

        Elements are stripped of surrounding whitespace and empty ones
        are dropped. The first element may be an absolute URL, the last
        one may carry a query string.
        """
        self._open().path_elements = [e.strip() for e in elements if e.strip()]
        return self

    def body(self, body: Any) -> Self:
        """Set the request body; ``None`` is a valid body."""
        self._open().body = body
        return self

    def merge_defaults(
        self,
        base_url: str = "",
        headers: Optional[Headers] = None,
        timeout: Optional[float] = None,
    ) -> Self:
        """
        Merge client-level defaults into the builder.

        The builder keeps its own base URL and timeout when set. For
        headers, request-level values win: a client header is copied
        only when the builder has no value for its key.
        """
        fields = self._open()

        if not fields.base_url:
            fields.base_url = base_url
        if fields.timeout is None and timeout and timeout > 0:
            fields.timeout = timeout

        if headers:
            if not fields.headers:
                fields.headers = headers.copy()
            else:
                for key in headers:
                    if key not in fields.headers:
                        fields.headers[key] = headers.get_list(key)
        return self

    def build(self, codec: BodyCodec) -> PreparedRequest:
        """
        Resolve the builder into a request. Consumes the builder.

        Args:
            codec: Codec encoding the body and contributing headers

        Returns:
            The request, the context it must run in, and the function
            cancelling any scope derived for it

        Raises:
            BuildError: If the URL is invalid or the body cannot be encoded
            BuilderReusedError: If the builder was already built
        """
        fields = self._open()
        self._fields = None
        try:
            return self._build(fields, codec)
        finally:
            _FIELDS_POOL.release(fields)

    def _build(self, fields: _BuilderFields, codec: BodyCodec) -> PreparedRequest:
        try:
            url = _resolve_url(fields)
        except ValueError as e:
            raise BuildError("build url", cause=e) from e

        try:
            content = _encode_body(fields, codec)
        except Exception as e:
            raise BuildError("build body", cause=e) from e

        try:
            request = httpx.Request(
                fields.method,
                url,
                headers=fields.headers.multi_items(),
                content=content,
            )
        except httpx.InvalidURL as e:
            raise BuildError("build request", cause=e) from e

        context, cancel = _resolve_context(fields)
        logger.debug(f"Built {fields.method} {request.url}")
        return PreparedRequest(request, context, cancel)

    def _open(self) -> _BuilderFields:
        if self._fields is None:
            raise BuilderReusedError()
        return self._fields

    def __repr__(self) -> str:
        if self._fields is None:
            return "<RequestBuilder consumed>"
        return f"<RequestBuilder {self._fields.method} {self._fields.path_elements!r}>"


def _resolve_url(fields: _BuilderFields) -> str:
    base, elements = fields.base_url, fields.path_elements

    if not base and not elements:
        raise EmptyURLError()
    if not base:
        url = join_path(elements[0], elements[1:])
    elif not elements:
        url = join_path(base, [])
    elif parse_url(elements[0]).scheme:
        # An absolute first element replaces the base
        url = join_path(elements[0], elements[1:])
    else:
        url = join_path(base, elements)

    if fields.query:
        query = parse_query(url.query)
        for key, values in fields.query.items():
            query[key] = list(values)
        url = url._replace(query=encode_query(query))

    resolved = urlunsplit(url)
    if not url.scheme or not url.netloc:
        raise ValueError(f"{resolved!r} is not an absolute URL")
    return resolved


def _encode_body(fields: _BuilderFields, codec: BodyCodec) -> Optional[bytes]:
    content = None
    headers = fields.headers

    if fields.body is not _NO_BODY:
        content = codec.encode(fields.body)

        if codec.content_length is not None:
            headers.set("Content-Length", str(codec.content_length()))
        if codec.content_type is not None:
            headers.set("Content-Type", codec.content_type())
        if codec.content_encoding is not None:
            headers.set("Content-Encoding", codec.content_encoding())

    if codec.accept is not None:
        headers.set("Accept", codec.accept())
    if codec.accept_encoding is not None:
        headers.set("Accept-Encoding", codec.accept_encoding())

    return content


def _resolve_context(fields: _BuilderFields) -> Tuple[Context, CancelFunc]:
    parent = fields.context
    if fields.timeout is None:
        if parent is None:
            return Context.background(), _noop
        return parent, _noop

    if parent is None:
        parent = Context.background()
    return parent.with_timeout(fields.timeout)


def _noop() -> None:
    pass


def new_request(method: str) -> RequestBuilder:
    return RequestBuilder(method)


def new_get() -> RequestBuilder:
    return RequestBuilder("GET")


def new_head() -> RequestBuilder:
    return RequestBuilder("HEAD")


def new_post() -> RequestBuilder:
    return RequestBuilder("POST")


def new_put() -> RequestBuilder:
    return RequestBuilder("PUT")


def new_patch() -> RequestBuilder:
    return RequestBuilder("PATCH")


def new_delete() -> RequestBuilder:
    return RequestBuilder("DELETE")


def new_connect() -> RequestBuilder:
    return RequestBuilder("CONNECT")


def new_options() -> RequestBuilder:
    return RequestBuilder("OPTIONS")


def new_trace() -> RequestBuilder:
    return RequestBuilder("TRACE")
