"""
Deferred multipart/form-data writer for fluent_http.

Parts are recorded as an ordered list of operations and only rendered
when the payload is serialized, which happens once, inside the
multipart body codec.
"""

import logging
import os
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, List, Mapping, Sequence, Tuple, Union

from typing_extensions import Self
from urllib3.fields import RequestField
from urllib3.filepost import encode_multipart_formdata

from .exceptions import MultipartStateError
from .pool import Pool

logger = logging.getLogger(__name__)

# RFC 2045 tspecials plus space; a boundary containing any of them is quoted
_TSPECIALS = frozenset('()<>@,;:\\"/[]?= ')

# RFC 2046 bchars
_BOUNDARY_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'()+_,-./:=? "
)

_FILE_CONTENT_TYPE = "application/octet-stream"

Readable = Union[bytes, str, IO[Any]]


def random_boundary() -> str:
    """30 random bytes, hex encoded."""
    return secrets.token_hex(30)


def validate_boundary(boundary: str) -> None:
    """
    Check a boundary against the RFC 2046 grammar.

    Raises:
        ValueError: If the boundary is invalid
    """
    if not 1 <= len(boundary) <= 70:
        raise ValueError("invalid boundary length")
    if boundary.endswith(" "):
        raise ValueError("boundary must not end with a space")
    for char in boundary:
        if char not in _BOUNDARY_CHARS:
            raise ValueError(f"invalid boundary character {char!r}")


def form_data_content_type(boundary: str) -> str:
    """Content-Type value for a multipart/form-data body."""
    if any(char in _TSPECIALS for char in boundary):
        boundary = f'"{boundary}"'
    return f"multipart/form-data; boundary={boundary}"


@dataclass(frozen=True)
class FieldValuePart:
    """Form field with a literal value."""
    fieldname: str
    value: str


@dataclass(frozen=True)
class FieldStreamPart:
    """Form field whose value is read from a stream at serialization."""
    fieldname: str
    reader: Readable


@dataclass(frozen=True)
class FilePart:
    """File upload read from ``path`` at serialization."""
    fieldname: str
    path: str


@dataclass(frozen=True)
class RawPart:
    """Part with caller-supplied headers and a body stream."""
    headers: Tuple[Tuple[str, str], ...]
    reader: Readable


Part = Union[FieldValuePart, FieldStreamPart, FilePart, RawPart]


class WriterState(Enum):
    """Lifecycle of a MultipartWriter."""
    BUILDING = "building"       # parts being appended
    SERIALIZED = "serialized"   # write_to has run
    RELEASED = "released"       # back in the pool


def _read_all(reader: Readable) -> bytes:
    data = reader if isinstance(reader, (bytes, str)) else reader.read()
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class _RawField(RequestField):
    """Field with caller-supplied headers, written one line per value."""

    def __init__(self, headers: Tuple[Tuple[str, str], ...], data: bytes) -> None:
        super().__init__(name="", data=data)
        self._header_lines = headers

    def render_headers(self) -> str:
        lines = [f"{key}: {value}" for key, value in self._header_lines]
        lines.append("\r\n")
        return "\r\n".join(lines)


def render_part(part: Part) -> RequestField:
    """
    Turn one recorded operation into a multipart field.

    Streams and files are read here; I/O errors propagate as-is.
    """
    if isinstance(part, FieldValuePart):
        field = RequestField(name=part.fieldname, data=part.value.encode("utf-8"))
        field.make_multipart()
    elif isinstance(part, FieldStreamPart):
        field = RequestField(name=part.fieldname, data=_read_all(part.reader))
        field.make_multipart()
    elif isinstance(part, FilePart):
        with open(part.path, "rb") as f:
            data = f.read()
        field = RequestField(
            name=part.fieldname,
            data=data,
            filename=os.path.basename(part.path),
        )
        field.make_multipart(content_type=_FILE_CONTENT_TYPE)
    elif isinstance(part, RawPart):
        field = _RawField(part.headers, _read_all(part.reader))
    else:
        raise TypeError(f"unknown multipart operation: {part!r}")
    return field


class MultipartWriter:
    """
    Ordered, deferred multipart/form-data builder.

    Every ``write_*`` method only records an operation; nothing is
    read until ``write_to`` replays the operations in order. A writer
    is single use: once serialized it cannot be appended to again.
    """

    def __init__(self) -> None:
        self._boundary = random_boundary()
        self._parts: List[Part] = []
        self._state = WriterState.BUILDING

    @property
    def boundary(self) -> str:
        return self._boundary

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def operations(self) -> Sequence[Part]:
        """Recorded operations, in replay order."""
        return tuple(self._parts)

    def set_boundary(self, boundary: str) -> Self:
        """
        Override the random boundary.

        Raises:
            ValueError: If the boundary violates RFC 2046
        """
        self._check_building()
        validate_boundary(boundary)
        self._boundary = boundary
        return self

    def form_data_content_type(self) -> str:
        """Content-Type for this writer's payload."""
        return form_data_content_type(self._boundary)

    def write_field_value(self, fieldname: str, value: str) -> Self:
        return self._append(FieldValuePart(fieldname, value))

    def write_field(self, fieldname: str, reader: Readable) -> Self:
        return self._append(FieldStreamPart(fieldname, reader))

    def write_file(self, fieldname: str, path: Union[str, "os.PathLike[str]"]) -> Self:
        return self._append(FilePart(fieldname, os.fspath(path)))

    def write_part(self, headers: Mapping[str, Union[str, Sequence[str]]], reader: Readable) -> Self:
        """Record a part with raw MIME headers."""
        items = []
        for key, value in headers.items():
            values = [value] if isinstance(value, str) else value
            items.extend((key, item) for item in values)
        return self._append(RawPart(tuple(items), reader))

    def write_to(self, sink: IO[bytes]) -> int:
        """
        Serialize the recorded operations into ``sink``.

        Operations are rendered in recorded order against an encoder
        bound to this writer's boundary; the first failure aborts the
        serialization and propagates.

        Returns:
            Number of bytes written
        """
        self._check_building()
        self._state = WriterState.SERIALIZED

        fields = [render_part(part) for part in self._parts]
        payload, _ = encode_multipart_formdata(fields, boundary=self._boundary)
        sink.write(payload)

        logger.debug(f"Serialized {len(fields)} multipart parts ({len(payload)} bytes)")
        return len(payload)

    def release(self) -> None:
        """Clear the writer and return it to the pool. Idempotent."""
        if self._state is WriterState.RELEASED:
            return
        _WRITER_POOL.release(self)

    def _append(self, part: Part) -> Self:
        self._check_building()
        self._parts.append(part)
        return self

    def _check_building(self) -> None:
        if self._state is not WriterState.BUILDING:
            raise MultipartStateError(
                f"multipart writer is {self._state.value}, not building"
            )

    def _reopen(self) -> None:
        self._boundary = random_boundary()
        self._state = WriterState.BUILDING

    def _clear(self) -> None:
        self._boundary = ""
        self._parts = []
        self._state = WriterState.RELEASED


_WRITER_POOL: Pool[MultipartWriter] = Pool(MultipartWriter, reset=MultipartWriter._clear)


def new_multipart_writer() -> MultipartWriter:
    """Get a building writer with a fresh random boundary."""
    writer = _WRITER_POOL.acquire()
    writer._reopen()
    return writer
