"""
Body codec protocol for fluent_http.

A codec encodes a request body, decodes a response body and may
contribute headers, classify responses or observe the exchange.
Only ``encode`` and ``decode`` are mandatory; every other capability
is an attribute that stays ``None`` unless a codec defines it, and
callers check it by presence:

    if codec.content_type is not None:
        headers.set("Content-Type", codec.content_type())
"""

import dataclasses
import io
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

import httpx

from .exceptions import DecodeError
from .pool import BUFFER_POOL, Pool

CONTENT_TYPE_JSON = "application/json; charset=utf-8"
CONTENT_TYPE_FORM_URLENCODED = "application/x-www-form-urlencoded"

Target = Any
"""A decode target: a type or callable receiving the decoded document."""


class Outcome(Enum):
    """Classification of a response."""
    SUCCESS = "success"
    WRONG = "wrong"
    DEFAULT = "default"   # neither classifier matched


def response_is_successful_2xx(response: httpx.Response) -> bool:
    """Default success policy: status in [200, 299]."""
    return 200 <= response.status_code <= 299


def response_is_wrong_gte_400(response: httpx.Response) -> bool:
    """Common wrong policy: status >= 400."""
    return response.status_code >= 400


class BodyCodec(ABC):
    """
    Base class for body codecs.

    Codec instances hold per-call scratch state and are drawn from a
    BodyCodecPool for exactly one request/response cycle. They are
    not safe for concurrent use.

    Optional capabilities (define as methods to opt in):

        content_length() -> int
        content_type() -> str
        content_encoding() -> str
        accept() -> str
        accept_encoding() -> str
        is_successful(response) -> bool
        is_wrong(response) -> bool
        decode_wrong(data, target) -> Any
        on_send(request) -> None
        on_receive(request, response) -> None
    """

    content_length: Optional[Callable[[], int]] = None
    content_type: Optional[Callable[[], str]] = None
    content_encoding: Optional[Callable[[], str]] = None

    accept: Optional[Callable[[], str]] = None
    accept_encoding: Optional[Callable[[], str]] = None

    is_successful: Optional[Callable[[httpx.Response], bool]] = None
    is_wrong: Optional[Callable[[httpx.Response], bool]] = None
    decode_wrong: Optional[Callable[[bytes, Target], Any]] = None

    on_send: Optional[Callable[[httpx.Request], None]] = None
    on_receive: Optional[Callable[[httpx.Request, httpx.Response], None]] = None

    def __init__(self) -> None:
        self.buf: Optional[io.BytesIO] = None

    @abstractmethod
    def encode(self, body: Any) -> bytes:
        """
        Encode a request body.

        Raises:
            UnsupportedBodyTypeError: If the codec cannot represent ``body``
        """
        pass

    @abstractmethod
    def decode(self, data: bytes, target: Target) -> Any:
        """
        Decode a response body into ``target``.

        Raises:
            DecodeError: If ``data`` is malformed for the target
        """
        pass

    def reset(self) -> None:
        """Clear per-call state. Called when the codec is released."""
        pass


C = TypeVar("C", bound=BodyCodec)


class BodyCodecPool(Pool[C]):
    """
    Pool of codec instances of one kind.

    Each acquired codec gets a scratch buffer from BUFFER_POOL which
    goes back to that pool when the codec is released.
    """

    def __init__(self, factory: Callable[[], C], max_idle: int = 64) -> None:
        super().__init__(factory, reset=_reset_codec, max_idle=max_idle)
        self.name = getattr(factory, "__name__", repr(factory))

    def acquire(self) -> C:
        codec = super().acquire()
        codec.buf = BUFFER_POOL.acquire()
        return codec

    def __repr__(self) -> str:
        return f"BodyCodecPool({self.name})"


def _reset_codec(codec: BodyCodec) -> None:
    buf, codec.buf = codec.buf, None
    if buf is not None:
        BUFFER_POOL.release(buf)
    codec.reset()


def classify(codec: BodyCodec, response: httpx.Response) -> Outcome:
    """
    Classify a response with the policies of ``codec``.

    ``is_wrong`` takes precedence over ``is_successful``; a codec
    without ``is_successful`` uses the 2xx policy.
    """
    if codec.is_wrong is not None and codec.is_wrong(response):
        return Outcome.WRONG

    is_successful = codec.is_successful or response_is_successful_2xx
    if is_successful(response):
        return Outcome.SUCCESS

    return Outcome.DEFAULT


def convert_target(document: Any, target: Target) -> Any:
    """
    Convert a decoded document into ``target``.

    ``typing.Any`` and ``object`` keep the document as decoded, a
    dataclass type receives a mapping as keyword arguments, and any
    other type or callable is called with the document.

    Raises:
        DecodeError: If the conversion fails
    """
    if target is Any or target is object:
        return document

    try:
        if dataclasses.is_dataclass(target) and isinstance(target, type):
            if not isinstance(document, dict):
                raise TypeError(
                    f"cannot build {target.__name__} from {type(document).__name__}"
                )
            return target(**document)
        if callable(target):
            return target(document)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Cannot convert decoded body: {e}", cause=e) from e

    raise DecodeError(f"Unsupported decode target: {target!r}")
