"""Interceptor chain runner and message release helpers.

Ownership moves forward one hop at a time: when a step returns a different
message than it was given, the runner releases the one it handed in. If a
step fails, the runner releases the message it currently holds and lets the
error propagate.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import httpx

from microhttp.interceptors import RequestInterceptor, ResponseInterceptor
from microhttp.models.context import CancellationToken

T = TypeVar("T")


async def guarded(awaitable: Awaitable[T], token: CancellationToken | None) -> T:
    """Await ``awaitable``, honoring ``token`` when one is given."""
    if token is None:
        return await awaitable
    return await token.guard(awaitable)


# =============================================================================
# Release
# =============================================================================


async def release_request(
    request: httpx.Request, successor: httpx.Request | None = None
) -> None:
    """Release a request's body stream.

    Skipped when ``successor`` reuses the same stream, since closing it
    would break the message that replaced this one. Caller-supplied upload
    files are not closed here; httpx multipart streams leave them open.
    """
    stream = request.stream
    if successor is not None and successor.stream is stream:
        return
    if isinstance(stream, httpx.AsyncByteStream):
        await stream.aclose()


async def release_response(
    response: httpx.Response, successor: httpx.Response | None = None
) -> None:
    """Close a response unless ``successor`` took over its body stream."""
    if successor is not None and successor.stream is response.stream:
        return
    await response.aclose()


async def release_after_failure(
    release: Callable[[], Awaitable[None]], primary: BaseException, what: str
) -> None:
    """Run ``release`` without letting its failure replace ``primary``."""
    try:
        await release()
    except Exception as e:
        primary.add_note(f"Releasing the {what} also failed: {e!r}")


# =============================================================================
# Chains
# =============================================================================


async def run_request_chain(
    request: httpx.Request,
    interceptors: Sequence[RequestInterceptor],
    token: CancellationToken | None = None,
) -> httpx.Request:
    """Apply request interceptors in order.

    Returns:
        The request produced by the last step (or ``request`` itself).
    """
    current = request
    try:
        for interceptor in interceptors:
            produced = await guarded(interceptor.process_request(current), token)
            if produced is not current:
                previous, current = current, produced
                await release_request(previous, successor=current)
    except BaseException as e:
        await release_after_failure(lambda: release_request(current), e, "request")
        raise
    return current


async def run_response_chain(
    response: httpx.Response,
    interceptors: Sequence[ResponseInterceptor],
    token: CancellationToken | None = None,
) -> httpx.Response:
    """Apply response interceptors in order.

    Returns:
        The response produced by the last step (or ``response`` itself).
    """
    current = response
    try:
        for interceptor in interceptors:
            produced = await guarded(interceptor.process_response(current), token)
            if produced is not current:
                previous, current = current, produced
                await release_response(previous, successor=current)
    except BaseException as e:
        await release_after_failure(lambda: release_response(current), e, "response")
        raise
    return current
