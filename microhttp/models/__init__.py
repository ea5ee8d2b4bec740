"""Public models for microhttp.

Example:
    from microhttp.models import RequestContext, CachePolicy

    context = (
        RequestContext.builder()
        .with_client("github")
        .with_header("Accept", "application/vnd.github+json")
        .with_cache_policy(CachePolicy.default())
        .build()
    )
"""

from microhttp.models.batch import BatchItem, BatchResults, HttpMethod, RequestBatch
from microhttp.models.caching import CachePolicy
from microhttp.models.context import (
    CancellationToken,
    RequestContext,
    RequestContextBuilder,
)
from microhttp.models.upload import FileContent, FileUploadRequest

__all__ = [
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
]
