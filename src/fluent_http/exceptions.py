"""
Custom exceptions for fluent_http.

This module defines the exception hierarchy used throughout
the library for error handling and debugging.
"""

from typing import Any, Optional


class HTTPClientError(Exception):
    """Base exception for all fluent_http errors."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class BuildError(HTTPClientError):
    """Raised when a request builder cannot be resolved into a request."""
    
    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(f"Build error: {message}", cause)


class EmptyURLError(BuildError):
    """Raised when neither a base URL nor a path was given."""
    
    def __init__(self) -> None:
        super().__init__("build url: empty url")


class UnsupportedBodyTypeError(HTTPClientError):
    """Raised when a codec cannot represent the shape of a body value."""
    
    def __init__(self, expected: str, body: Any) -> None:
        super().__init__(
            f"expected body type '{expected}', "
            f"got unconvertible value type '{type(body).__name__}'"
        )
        self.expected = expected
        self.body_type = type(body)


class ResponseError(HTTPClientError):
    """Base for errors raised after a response has been received."""
    
    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response: Any = None,
        body: Optional[bytes] = None,
    ) -> None:
        super().__init__(message, cause)
        self.url = url
        self.status_code = status_code
        self.response = response
        self.body = body


class DecodeError(ResponseError):
    """Raised when a response body cannot be decoded into its target."""


class ClassificationError(ResponseError):
    """Raised when a response is 'wrong' and no wrong target was supplied."""


class MultipartStateError(HTTPClientError):
    """Raised when a multipart writer is used outside its building state."""


class RequestCancelledError(HTTPClientError):
    """Raised when the context governing a call is cancelled."""


class BuilderReusedError(RuntimeError):
    """
    Raised when a request builder is used after it has been built.
    
    This is a programming error, not a failed call, so it is not part
    of the HTTPClientError hierarchy.
    """
    
    def __init__(self) -> None:
        super().__init__("'RequestBuilder' is not reusable")
