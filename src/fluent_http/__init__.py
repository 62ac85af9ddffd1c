"""
fluent_http - Fluent HTTP client layer

A request builder, pluggable body codecs and a dispatch routine that
classifies responses as success or wrong and decodes them accordingly,
on top of httpx.
"""

__version__ = "0.1.0"
__author__ = "Developer"
__email__ = "dev@example.com"

# Import main components for easy access
from .client import Client, RawExchange, Result
from .codec import (
    CONTENT_TYPE_FORM_URLENCODED,
    CONTENT_TYPE_JSON,
    BodyCodec,
    BodyCodecPool,
    Outcome,
    classify,
    response_is_successful_2xx,
    response_is_wrong_gte_400,
)
from .codecs import (
    BODY_CODEC_FORM_URLENCODED_JSON,
    BODY_CODEC_JSON,
    BODY_CODEC_MULTIPART,
    FormUrlencodedJSONBodyCodec,
    JSONBodyCodec,
    MultipartBodyCodec,
)
from .context import Context
from .defaults import TransportConfig, default_client
from .exceptions import (
    BuilderReusedError,
    BuildError,
    ClassificationError,
    DecodeError,
    EmptyURLError,
    HTTPClientError,
    MultipartStateError,
    RequestCancelledError,
    UnsupportedBodyTypeError,
)
from .headers import Headers, canonical_header_key
from .multipart import MultipartWriter, new_multipart_writer
from .pool import BUFFER_POOL, Pool
from .request import (
    BuilderState,
    PreparedRequest,
    RequestBuilder,
    new_connect,
    new_delete,
    new_get,
    new_head,
    new_options,
    new_patch,
    new_post,
    new_put,
    new_request,
    new_trace,
)

__all__ = [
    "Client",
    "RawExchange",
    "Result",
    "BodyCodec",
    "BodyCodecPool",
    "Outcome",
    "classify",
    "response_is_successful_2xx",
    "response_is_wrong_gte_400",
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_FORM_URLENCODED",
    "BODY_CODEC_JSON",
    "BODY_CODEC_FORM_URLENCODED_JSON",
    "BODY_CODEC_MULTIPART",
    "JSONBodyCodec",
    "FormUrlencodedJSONBodyCodec",
    "MultipartBodyCodec",
    "Context",
    "TransportConfig",
    "default_client",
    "HTTPClientError",
    "BuildError",
    "EmptyURLError",
    "UnsupportedBodyTypeError",
    "DecodeError",
    "ClassificationError",
    "MultipartStateError",
    "RequestCancelledError",
    "BuilderReusedError",
    "Headers",
    "canonical_header_key",
    "MultipartWriter",
    "new_multipart_writer",
    "Pool",
    "BUFFER_POOL",
    "RequestBuilder",
    "BuilderState",
    "PreparedRequest",
    "new_request",
    "new_get",
    "new_head",
    "new_post",
    "new_put",
    "new_patch",
    "new_delete",
    "new_connect",
    "new_options",
    "new_trace",
]
