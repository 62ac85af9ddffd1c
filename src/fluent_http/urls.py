"""
URL helpers for fluent_http.

Path joining works on the escaped form of each element: elements are
joined and lexically cleaned like filesystem paths, and a query string
trailing the joined elements becomes the URL's query.
"""

import posixpath
from typing import Dict, List, Mapping, Sequence
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit

QueryValues = Dict[str, List[str]]


def clean_path(path: str) -> str:
    """
    Return the shortest path equivalent to ``path``.

    Redundant slashes and ``.`` elements are removed, ``..`` elements
    are resolved lexically. An empty path cleans to ``"."``.
    """
    if not path:
        return "."

    cleaned = posixpath.normpath(path)
    # normpath keeps a leading "//" (implementation defined in POSIX)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def join_elements(elements: Sequence[str]) -> str:
    """Join non-empty elements with "/" and clean the result."""
    parts = [element for element in elements if element]
    if not parts:
        return ""
    return clean_path("/".join(parts))


def parse_url(raw: str) -> SplitResult:
    """
    Split a URL into its components.

    Raises:
        ValueError: If the URL is malformed (e.g. an invalid IPv6 host
            or an out-of-range port)
    """
    url = urlsplit(raw)
    # Accessing the port validates it
    url.port
    return url


def join_path(base: str, elements: Sequence[str]) -> SplitResult:
    """
    Join path elements under the path of ``base``.

    Args:
        base: URL whose path the elements are appended to
        elements: Raw path elements; the last one may carry a query string

    Returns:
        The joined URL. When elements are given, the query of the joined
        elements replaces the query of ``base``.
    """
    url = parse_url(base)
    if not elements:
        return url

    ref = parse_url(join_elements(elements))

    if url.path.startswith("/"):
        path = join_elements([url.path, ref.path])
    else:
        # Relative base paths (no host) stay relative and never climb above
        # their root; _resolve_url rejects such URLs as not absolute
        path = join_elements(["/" + url.path, ref.path])[1:]

    # Joining drops trailing slashes; preserve at least one
    if ref.path.endswith("/") and not path.endswith("/"):
        path += "/"
    if url.netloc and path and not path.startswith("/"):
        path = "/" + path

    return url._replace(path=path, query=ref.query)


def parse_query(raw: str) -> QueryValues:
    """Parse a raw query string into a multimap, keeping blank values."""
    query: QueryValues = {}
    for key, value in parse_qsl(raw, keep_blank_values=True):
        query.setdefault(key, []).append(value)
    return query


def encode_query(query: Mapping[str, Sequence[str]]) -> str:
    """
    Encode a query multimap as ``key=value`` pairs sorted by key.

    Keys and values are escaped with ``quote_plus``; the values of one
    key keep their order.
    """
    pairs = [(key, value) for key in sorted(query) for value in query[key]]
    return urlencode(pairs)
