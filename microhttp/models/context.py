"""Per-call request configuration.

A ``RequestContext`` tells the dispatcher which named client to use, which
headers to add, which interceptors to run and how the call can be cancelled.
Contexts are frozen: build one per call or share one across calls, the
dispatcher only ever reads it.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Mapping
from typing import TypeVar

from pydantic import BaseModel, Field, field_validator

from microhttp.interceptors import RequestInterceptor, ResponseInterceptor
from microhttp.models.caching import CachePolicy

T = TypeVar("T")

CANCELLED_MESSAGE = "request was cancelled"


# =============================================================================
# Cancellation
# =============================================================================


class CancellationToken:
    """Cooperative cancellation signal shared by one or more calls.

    Firing the token makes whatever the dispatch is currently awaiting
    (an interceptor, the transport, a body read, a stream consumer) raise
    ``asyncio.CancelledError``. Cleanup still runs on that path.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def cancel_after(self, delay: float) -> asyncio.TimerHandle:
        """Fire the token after ``delay`` seconds on the running loop."""
        return asyncio.get_running_loop().call_later(delay, self.cancel)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError(CANCELLED_MESSAGE)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        ``awaitable`` runs in the calling task, so it has fully unwound by
        the time this returns or raises. A cancellation caused by the token
        is withdrawn from the task's cancel count before re-raising; one
        coming from outside is left in place.

        Args:
            awaitable: The coroutine or future to run.

        Returns:
            Whatever ``awaitable`` returns.

        Raises:
            asyncio.CancelledError: If the token fired before completion.
        """
        if self.cancelled:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise asyncio.CancelledError(CANCELLED_MESSAGE)

        task = asyncio.current_task()
        active = True
        fired = False

        def interrupt(_: asyncio.Future) -> None:
            nonlocal fired
            if active and self.cancelled and task is not None:
                fired = True
                task.cancel(CANCELLED_MESSAGE)

        watcher = asyncio.ensure_future(self._event.wait())
        watcher.add_done_callback(interrupt)
        try:
            result = await awaitable
        except asyncio.CancelledError:
            if fired:
                task.uncancel()
                raise asyncio.CancelledError(CANCELLED_MESSAGE) from None
            raise
        finally:
            active = False
            watcher.cancel()

        if fired:
            # The step swallowed the cancellation; the token still wins.
            task.uncancel()
            raise asyncio.CancelledError(CANCELLED_MESSAGE)
        return result


# =============================================================================
# Request Context
# =============================================================================


class RequestContext(BaseModel):
    """Configuration for a single dispatch.

    Fields:
        client_name: Name of the registered HTTP client to send through.
            ``None`` selects the default client.
        headers: Extra request headers. Keys are case-insensitive; when the
            same header is given twice the later value wins.
        cancellation: Optional token that cancels the call.
        cache_policy: Caching hints for layers built on top. Not enforced.
        request_interceptors: Applied in order before the request is sent.
        response_interceptors: Applied in order before status validation.
    """

    client_name: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    cancellation: CancellationToken | None = None
    cache_policy: CachePolicy | None = None
    request_interceptors: tuple[RequestInterceptor, ...] = ()
    response_interceptors: tuple[ResponseInterceptor, ...] = ()

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @field_validator("headers")
    @classmethod
    def collapse_header_case(cls, v: dict[str, str]) -> dict[str, str]:
        return merge_headers(v)

    @classmethod
    def default(cls) -> "RequestContext":
        return cls()

    @classmethod
    def builder(cls) -> "RequestContextBuilder":
        return RequestContextBuilder()


def merge_headers(*sources: Mapping[str, str]) -> dict[str, str]:
    """Merge header mappings case-insensitively, later writes winning.

    The surviving key keeps the spelling of the last write.
    """
    merged: dict[str, str] = {}
    spelling: dict[str, str] = {}
    for source in sources:
        for key, value in source.items():
            previous = spelling.get(key.lower())
            if previous is not None:
                del merged[previous]
            spelling[key.lower()] = key
            merged[key] = value
    return merged


class RequestContextBuilder:
    """Fluent construction of a ``RequestContext``."""

    def __init__(self) -> None:
        self._client_name: str | None = None
        self._headers: dict[str, str] = {}
        self._cancellation: CancellationToken | None = None
        self._cache_policy: CachePolicy | None = None
        self._request_interceptors: list[RequestInterceptor] = []
        self._response_interceptors: list[ResponseInterceptor] = []

    def with_client(self, client_name: str) -> "RequestContextBuilder":
        self._client_name = client_name
        return self

    def with_header(self, key: str, value: str) -> "RequestContextBuilder":
        self._headers = merge_headers(self._headers, {key: value})
        return self

    def with_headers(self, headers: Mapping[str, str]) -> "RequestContextBuilder":
        """Replace all headers collected so far."""
        self._headers = merge_headers(headers)
        return self

    def with_cancellation(self, token: CancellationToken) -> "RequestContextBuilder":
        self._cancellation = token
        return self

    def with_cache_policy(self, policy: CachePolicy) -> "RequestContextBuilder":
        self._cache_policy = policy
        return self

    def with_request_interceptor(
        self, *interceptors: RequestInterceptor
    ) -> "RequestContextBuilder":
        self._request_interceptors.extend(interceptors)
        return self

    def with_response_interceptor(
        self, *interceptors: ResponseInterceptor
    ) -> "RequestContextBuilder":
        self._response_interceptors.extend(interceptors)
        return self

    def build(self) -> RequestContext:
        return RequestContext(
            client_name=self._client_name,
            headers=self._headers,
            cancellation=self._cancellation,
            cache_policy=self._cache_policy,
            request_interceptors=tuple(self._request_interceptors),
            response_interceptors=tuple(self._response_interceptors),
        )


def resolve_context(*candidates: RequestContext | None) -> RequestContext:
    """Return the first non-None context, or a default one."""
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return RequestContext.default()


__all__ = [
    "CancellationToken",
    "RequestContext",
    "RequestContextBuilder",
    "merge_headers",
    "resolve_context",
]

