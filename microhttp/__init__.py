"""microhttp: async HTTP dispatch on top of httpx.

Public API:
    MicroHttp - User-facing client (verbs, uploads, streams, batches)
    RequestContext - Per-call configuration (client, headers, interceptors)
    RequestInterceptor / ResponseInterceptor - Pipeline extension points

Internal (not for direct use):
    _internal.dispatch - Request pipeline and batch execution
    _internal.codec - JSON and multipart payload handling
    _internal.http - Named httpx client factory
"""

from microhttp._internal.codec import JsonOptions
from microhttp._internal.dispatch.streaming import ResponseStream
from microhttp._internal.http import ClientFactory, HttpClientFactory
from microhttp._version import __version__
from microhttp.client import MicroHttp
from microhttp.exceptions import (
    DecodingError,
    EncodingError,
    HttpStatusError,
    MicroHttpConfigError,
    MicroHttpError,
    MicroHttpValidationError,
    TransportError,
)
from microhttp.interceptors import RequestInterceptor, ResponseInterceptor
from microhttp.models import (
    BatchItem,
    BatchResults,
    CachePolicy,
    CancellationToken,
    FileContent,
    FileUploadRequest,
    HttpMethod,
    RequestBatch,
    RequestContext,
    RequestContextBuilder,
)

__all__ = [
    "__version__",
    "MicroHttp",
    "ClientFactory",
    "HttpClientFactory",
    "JsonOptions",
    "ResponseStream",
    "RequestInterceptor",
    "ResponseInterceptor",
    "BatchItem",
    "BatchResults",
    "CachePolicy",
    "CancellationToken",
    "FileContent",
    "FileUploadRequest",
    "HttpMethod",
    "RequestBatch",
    "RequestContext",
    "RequestContextBuilder",
    "MicroHttpError",
    "MicroHttpConfigError",
    "MicroHttpValidationError",
    "EncodingError",
    "DecodingError",
    "HttpStatusError",
    "TransportError",
]
