"""
Header multimap for fluent_http.

Header keys are stored in MIME canonical form, so "content-type",
"CONTENT-TYPE" and "Content-Type" all address the same entry.
"""

import base64
from typing import (
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

HeaderInput = Union[
    "Headers",
    Mapping[str, Union[str, Sequence[str]]],
    Iterable[Tuple[str, str]],
]

# RFC 7230 token characters other than letters and digits
_TOKEN_EXTRA = frozenset("!#$%&'*+-.^_`|~")


def _is_token_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char in _TOKEN_EXTRA)


def canonical_header_key(key: str) -> str:
    """
    Return the canonical format of a header key.

    The first letter and any letter following a hyphen are upper
    case, the rest are lower case. Keys containing a space or any
    other non-token character are returned unchanged.
    """
    if not key or not all(_is_token_char(c) for c in key):
        return key

    chars = []
    upper = True
    for char in key:
        chars.append(char.upper() if upper else char.lower())
        upper = char == "-"
    return "".join(chars)


def basic_auth(username: str, password: str) -> str:
    """Base64 credentials for an ``Authorization: Basic`` header."""
    # RFC 2617: the userid and password are joined by a single colon and
    # base64 encoded, not url encoded.
    auth = f"{username}:{password}"
    return base64.b64encode(auth.encode("utf-8")).decode("ascii")


class Headers(MutableMapping[str, List[str]]):
    """
    Case-insensitive header multimap.

    Maps canonical keys to their ordered list of values. Iteration
    order is insertion order of the keys.
    """

    def __init__(self, headers: Optional[HeaderInput] = None) -> None:
        self._store: Dict[str, List[str]] = {}
        if headers is None:
            return

        if isinstance(headers, Headers):
            for key, values in headers.items():
                self._store[key] = list(values)
        elif isinstance(headers, Mapping):
            for key, value in headers.items():
                if isinstance(value, str):
                    self.add(key, value)
                else:
                    for item in value:
                        self.add(key, item)
        else:
            for key, value in headers:
                self.add(key, value)

    def __getitem__(self, key: str) -> List[str]:
        return self._store[canonical_header_key(key)]

    def __setitem__(self, key: str, values: List[str]) -> None:
        self._store[canonical_header_key(key)] = list(values)

    def __delitem__(self, key: str) -> None:
        del self._store[canonical_header_key(key)]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return canonical_header_key(key) in self._store

    def __iter__(self) -> Iterator[str]:
        return iter(self._store)

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"Headers({self._store!r})"

    def set(self, key: str, value: str) -> None:
        """Replace all values of ``key`` with ``value``."""
        self._store[canonical_header_key(key)] = [value]

    def add(self, key: str, value: str) -> None:
        """Append ``value`` to the values of ``key``."""
        self._store.setdefault(canonical_header_key(key), []).append(value)

    def first(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get the first value of ``key``."""
        values = self._store.get(canonical_header_key(key))
        if not values:
            return default
        return values[0]

    def get_list(self, key: str) -> List[str]:
        """Get all values of ``key`` (empty list when absent)."""
        return list(self._store.get(canonical_header_key(key), []))

    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        self._store.pop(canonical_header_key(key), None)

    def copy(self) -> "Headers":
        """Deep copy: value lists are not shared."""
        return Headers(self)

    def multi_items(self) -> List[Tuple[str, str]]:
        """Flatten into ``(key, value)`` pairs, one per value."""
        return [(key, value) for key, values in self._store.items() for value in values]
