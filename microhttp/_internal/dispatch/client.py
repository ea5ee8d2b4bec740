"""Dispatcher: runs one logical HTTP operation end to end."""

import contextlib
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

import httpx

from microhttp._internal.codec import PayloadCodec, RequestBody
from microhttp._internal.dispatch.chain import (
    guarded,
    release_after_failure,
    release_request,
    release_response,
    run_request_chain,
    run_response_chain,
)
from microhttp._internal.dispatch.redaction import redact_headers, redact_url
from microhttp._internal.dispatch.streaming import ResponseStream
from microhttp._internal.http import ClientFactory
from microhttp.exceptions import HttpStatusError, MicroHttpValidationError, TransportError
from microhttp.models.context import RequestContext

T = TypeVar("T")

CONTENT_TYPE_HEADER = "content-type"

StreamConsumer = Callable[[ResponseStream], Awaitable[Any]]


class Dispatcher:
    """Runs the request pipeline for one call at a time.

    Every dispatch goes through the same steps: build the request, run the
    request interceptors, send it (returning as soon as headers arrive),
    run the response interceptors, validate the status, then decode or
    stream the body. The final response and request are released on every
    exit path, including cancellation.

    Errors are never turned into return values: ``HttpStatusError``,
    ``TransportError``, ``DecodingError`` and ``asyncio.CancelledError``
    all propagate to the caller.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        codec: PayloadCodec | None = None,
        *,
        debug: bool = False,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            client_factory: Looks up the httpx client for a context's client name.
            codec: Payload codec; defaults to one with default JSON options.
            debug: Enable debug logging to stderr.
        """
        self._clients = client_factory
        self.codec = codec or PayloadCodec()
        self._debug = debug

    def _log_debug(self, message: str) -> None:
        """Log a debug message to stderr if debug mode is enabled."""
        if self._debug:
            print(f"[microhttp] {message}", file=sys.stderr)

    # =========================================================================
    # Public operations
    # =========================================================================

    async def send(
        self,
        method: str,
        url: str,
        body: RequestBody | None,
        context: RequestContext,
        response_type: type[T],
    ) -> T:
        """Dispatch a request and decode the response into ``response_type``.

        The body is read exactly once, as text. ``str`` responses are
        returned as-is without JSON parsing.
        """
        async with self._exchange(method, url, body, context) as response:
            text = await self._read_text(response, context)
        if response_type is str:
            return text  # type: ignore[return-value]
        return self.codec.decode(text, response_type)

    async def send_void(
        self,
        method: str,
        url: str,
        body: RequestBody | None,
        context: RequestContext,
    ) -> None:
        """Dispatch a request, validate its status and discard the body."""
        async with self._exchange(method, url, body, context):
            pass

    async def send_stream(
        self,
        method: str,
        url: str,
        context: RequestContext,
        consumer: StreamConsumer,
    ) -> None:
        """Dispatch a request and hand the live body to ``consumer``.

        Nothing is released until ``consumer`` returns or raises. Afterwards
        the stream, the response and the request are released in that order.
        """
        async with self._exchange(method, url, None, context) as response:
            stream = ResponseStream(response)
            try:
                await guarded(consumer(stream), context.cancellation)
            except BaseException as e:
                await release_after_failure(stream.aclose, e, "response stream")
                raise
            await stream.aclose()

    # =========================================================================
    # Pipeline
    # =========================================================================

    @contextlib.asynccontextmanager
    async def _exchange(
        self,
        method: str,
        url: str,
        body: RequestBody | None,
        context: RequestContext,
    ) -> AsyncIterator[httpx.Response]:
        client = self._clients.create_client(context.client_name or "")
        token = context.cancellation
        if token is not None:
            token.raise_if_cancelled()

        request = self._build_request(client, method, url, body, context)
        request = await run_request_chain(request, context.request_interceptors, token)

        response: httpx.Response | None = None
        try:
            self._log_debug(
                f"{request.method} {redact_url(request.url)} "
                f"headers={redact_headers(request.headers)}"
            )
            inbound = await self._invoke(client, request, context)
            response = await run_response_chain(inbound, context.response_interceptors, token)
            self._log_debug(f"{request.method} {redact_url(request.url)} -> {response.status_code}")
            await self._ensure_success(request, response, context)
            yield response
        except BaseException as e:
            if response is not None:
                await release_after_failure(
                    lambda: release_response(response), e, "response"
                )
            await release_after_failure(lambda: release_request(request), e, "request")
            raise
        else:
            if response is not None:
                await release_response(response)
            await release_request(request)

    def _build_request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        body: RequestBody | None,
        context: RequestContext,
    ) -> httpx.Request:
        headers: dict[str, str] = {}
        content_type = body.content_type if body is not None else None
        for key, value in context.headers.items():
            if key.lower() == CONTENT_TYPE_HEADER:
                if body is None:
                    self._log_debug(f"Ignoring {key} header on a request without a body")
                    continue
                content_type = value
            else:
                headers[key] = value

        try:
            request = client.build_request(
                method,
                url,
                content=body.content if body is not None else None,
                data=body.data if body is not None else None,
                files=body.files if body is not None else None,
                headers=headers,
            )
        except httpx.InvalidURL as e:
            raise MicroHttpValidationError(f"Invalid request for {url!r}: {e}") from e

        if content_type is not None:
            request.headers["Content-Type"] = content_type
        return request

    async def _invoke(
        self,
        client: httpx.AsyncClient,
        request: httpx.Request,
        context: RequestContext,
    ) -> httpx.Response:
        try:
            return await guarded(client.send(request, stream=True), context.cancellation)
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request failed: {e}") from e

    async def _read_text(self, response: httpx.Response, context: RequestContext) -> str:
        try:
            await guarded(response.aread(), context.cancellation)
        except httpx.HTTPError as e:
            raise TransportError(f"Reading response body failed: {e}") from e
        return response.text

    async def _ensure_success(
        self,
        request: httpx.Request,
        response: httpx.Response,
        context: RequestContext,
    ) -> None:
        if response.is_success:
            return

        body: str | None
        try:
            body = await self._read_text(response, context)
        except TransportError as e:
            self._log_debug(f"Could not read error body: {e}")
            body = None

        reason = response.reason_phrase
        raise HttpStatusError(
            f"HTTP request failed: {response.status_code} {reason}".rstrip(),
            status_code=response.status_code,
            body=body,
            url=redact_url(request.url),
        )

