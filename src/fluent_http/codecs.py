"""
Built-in body codecs for fluent_http.

Each codec kind comes with a module-level pool (``BODY_CODEC_*``);
clients and callers hand the pool around, never a codec instance.
"""

import json
from typing import Any, List, Mapping, Optional

from .codec import (
    CONTENT_TYPE_FORM_URLENCODED,
    CONTENT_TYPE_JSON,
    BodyCodec,
    BodyCodecPool,
    Target,
    convert_target,
    response_is_successful_2xx,
)
from .exceptions import DecodeError, UnsupportedBodyTypeError
from .multipart import MultipartWriter, WriterState
from .urls import encode_query


def decode_json(data: bytes, target: Target) -> Any:
    """Parse a JSON document and convert it into ``target``."""
    try:
        document = json.loads(data)
    except ValueError as e:
        raise DecodeError(f"Invalid JSON body: {e}", cause=e) from e
    return convert_target(document, target)


class _JSONResponseCodec(BodyCodec):
    """Shared response side: JSON decode, 2xx success, JSON accept."""

    def __init__(self) -> None:
        super().__init__()
        self._content_length = 0

    def decode(self, data: bytes, target: Target) -> Any:
        return decode_json(data, target)

    def is_successful(self, response) -> bool:
        return response_is_successful_2xx(response)

    def content_length(self) -> int:
        return self._content_length

    def accept(self) -> str:
        return CONTENT_TYPE_JSON

    def reset(self) -> None:
        self._content_length = 0

    def _finish(self) -> bytes:
        data = self.buf.getvalue()
        self._content_length = len(data)
        return data


class JSONBodyCodec(_JSONResponseCodec):
    """JSON request and response bodies."""

    def encode(self, body: Any) -> bytes:
        try:
            document = json.dumps(body, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise UnsupportedBodyTypeError("JSON serializable", body) from e

        # Newline terminated, like a streaming JSON encoder
        self.buf.write(document.encode("utf-8"))
        self.buf.write(b"\n")
        return self._finish()

    def content_type(self) -> str:
        return CONTENT_TYPE_JSON


class FormUrlencodedJSONBodyCodec(_JSONResponseCodec):
    """
    Form-urlencoded request body, JSON response body.

    The body must map string keys to a string or a sequence of
    strings. Keys are written in sorted order so the output does not
    depend on mapping order.
    """

    def encode(self, body: Any) -> bytes:
        if body is None:
            return self._finish()

        values = _form_values(body)
        if values is None:
            raise UnsupportedBodyTypeError("Mapping[str, Sequence[str]]", body)

        self.buf.write(encode_query(values).encode("ascii"))
        return self._finish()

    def content_type(self) -> str:
        return CONTENT_TYPE_FORM_URLENCODED


def _form_values(body: Any) -> Optional[Mapping[str, List[str]]]:
    if not isinstance(body, Mapping):
        return None

    values = {}
    for key, value in body.items():
        if not isinstance(key, str):
            return None
        if isinstance(value, str):
            values[key] = [value]
        elif isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            values[key] = list(value)
        else:
            return None
    return values


class MultipartBodyCodec(_JSONResponseCodec):
    """
    multipart/form-data request body, JSON response body.

    The body must be a building MultipartWriter; it is serialized and
    released during ``encode`` whether or not serialization succeeds.
    A writer that is no longer building is rejected and left untouched.
    """

    def __init__(self) -> None:
        super().__init__()
        self._content_type = ""

    def encode(self, body: Any) -> bytes:
        if not isinstance(body, MultipartWriter):
            raise UnsupportedBodyTypeError(MultipartWriter.__name__, body)

        owned = body.state is WriterState.BUILDING
        try:
            body.write_to(self.buf)
            self._content_type = body.form_data_content_type()
        finally:
            if owned:
                body.release()

        return self._finish()

    def content_type(self) -> str:
        return self._content_type

    def reset(self) -> None:
        super().reset()
        self._content_type = ""


BODY_CODEC_JSON = BodyCodecPool(JSONBodyCodec)
BODY_CODEC_FORM_URLENCODED_JSON = BodyCodecPool(FormUrlencodedJSONBodyCodec)
BODY_CODEC_MULTIPART = BodyCodecPool(MultipartBodyCodec)
