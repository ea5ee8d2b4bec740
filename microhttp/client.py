"""User-facing async HTTP client.

Example:
    from microhttp import MicroHttp, RequestContext

    async with MicroHttp.from_env() as http:
        user = await http.get("/users/42", User)
        created = await http.post("/users", NewUser(name="Ada"), User)
        await http.delete("/users/42")

Every operation takes either a full ``RequestContext`` or the shorthand
``client_name``/``cancellation`` keywords, not both.
"""

import os
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from microhttp._internal.codec import JsonOptions, PayloadCodec, RequestBody
from microhttp._internal.dispatch.batch import BatchExecutor
from microhttp._internal.dispatch.chain import release_after_failure
from microhttp._internal.dispatch.client import Dispatcher
from microhttp._internal.dispatch.streaming import ResponseStream
from microhttp._internal.http import DEFAULT_TIMEOUT, ClientFactory, HttpClientFactory
from microhttp.exceptions import MicroHttpValidationError
from microhttp.models.batch import BatchResults, HttpMethod, RequestBatch
from microhttp.models.context import CancellationToken, RequestContext
from microhttp.models.upload import FileUploadRequest

T = TypeVar("T")

DEFAULT_TIMEOUT_MS = int(DEFAULT_TIMEOUT * 1000)


class MicroHttp:
    """Async HTTP client with interceptors, typed decoding and batching.

    Pass ``response_type`` to get the decoded body back; leave it out to
    only validate the status. Failures raise: ``HttpStatusError`` for
    non-2xx responses, ``TransportError`` for network problems,
    ``DecodingError``/``EncodingError`` for payload problems and
    ``asyncio.CancelledError`` when a cancellation token fires.

    Use ``MicroHttp.from_env()`` to create a client from environment variables.
    """

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        *,
        json_options: JsonOptions | None = None,
        debug: bool = False,
    ) -> None:
        """Initialize the client.

        Args:
            client_factory: Provides httpx clients by name. When omitted, an
                ``HttpClientFactory`` with default settings is created and
                closed together with this client.
            json_options: JSON naming and parsing behavior.
            debug: Enable debug logging to stderr.
        """
        self._owns_factory = client_factory is None
        self._factory = client_factory or HttpClientFactory()
        self._codec = PayloadCodec(json_options)
        self._dispatcher = Dispatcher(self._factory, self._codec, debug=debug)
        self._batches = BatchExecutor(self._dispatcher, debug=debug)
        self._debug = debug

    @classmethod
    def from_env(cls, *, json_options: JsonOptions | None = None) -> "MicroHttp":
        """Create a client from environment variables.

        Optional environment variables:
            MICROHTTP_BASE_URL: Base URL for the default client.
            MICROHTTP_TIMEOUT_MS: Default client timeout in milliseconds.
            MICROHTTP_DEBUG: Set to "1" to enable debug logging.

        Returns:
            A configured MicroHttp that owns its client factory.

        Raises:
            ValueError: If MICROHTTP_TIMEOUT_MS is not an integer.
        """
        base_url = os.environ.get("MICROHTTP_BASE_URL")
        timeout_ms = int(os.environ.get("MICROHTTP_TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS)))
        debug = os.environ.get("MICROHTTP_DEBUG", "") == "1"

        client = cls(
            HttpClientFactory(base_url=base_url, timeout=timeout_ms / 1000),
            json_options=json_options,
            debug=debug,
        )
        client._owns_factory = True
        return client

    @property
    def client_factory(self) -> ClientFactory:
        return self._factory

    @property
    def json_options(self) -> JsonOptions:
        return self._codec.options

    async def aclose(self) -> None:
        if self._owns_factory and isinstance(self._factory, HttpClientFactory):
            await self._factory.aclose()

    async def __aenter__(self) -> "MicroHttp":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # =========================================================================
    # Verbs
    # =========================================================================

    async def get(
        self,
        url: str,
        response_type: type[T] | None = None,
        *,
        context: RequestContext | None = None,
        client_name: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> T | None:
        """Send a GET request.

        Args:
            url: Absolute URL, or relative to the client's base URL.
            response_type: Type to decode the body into; ``str`` returns the
                raw text. ``None`` validates the status and discards the body.
            context: Full request context.
            client_name: Shorthand for a context with only a client name.
            cancellation: Shorthand for a context with only a token.

        Returns:
            The decoded body, or None when ``response_type`` is None.
        """
        ctx = _context_for(context, client_name, cancellation)
        return await self._send(HttpMethod.GET, url, None, ctx, response_type)

    async def post(
        self,
        url: str,
        data: Any,
        response_type: type[T] | None = None,
        *,
        context: RequestContext | None = None,
        client_name: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> T | None:
        """Send ``data`` as JSON with POST."""
        ctx = _context_for(context, client_name, cancellation)
        return await self._send(HttpMethod.POST, url, self._encode(data), ctx, response_type)

    async def put(
        self,
        url: str,
        data: Any,
        response_type: type[T] | None = None,
        *,
        context: RequestContext | None = None,
        client_name: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> T | None:
        """Send ``data`` as JSON with PUT."""
        ctx = _context_for(context, client_name, cancellation)
        return await self._send(HttpMethod.PUT, url, self._encode(data), ctx, response_type)

    async def patch(
        self,
        url: str,
        data: Any,
        response_type: type[T] | None = None,
        *,
        context: RequestContext | None = None,
        client_name: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> T | None:
        """Send ``data`` as JSON with PATCH."""
        ctx = _context_for(context, client_name, cancellation)
        return await self._send(HttpMethod.PATCH, url, self._encode(data), ctx, response_type)

    async def delete(
        self,
        url: str,
        response_type: type[T] | None = None,
        *,
        context: RequestContext | None = None,
        client_name: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> T | None:
        """Send a DELETE request."""
        ctx = _context_for(context, client_name, cancellation)
        return await self._send(HttpMethod.DELETE, url, None, ctx, response_type)

    # =========================================================================
    # Uploads, streams and batches
    # =========================================================================

    async def post_file(
        self,
        url: str,
        upload: FileUploadRequest,
        response_type: type[T] | None = None,
        *,
        context: RequestContext | None = None,
        client_name: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> T | None:
        """Upload files as multipart/form-data with POST.

        File streams are read lazily while the request is sent. Streams the
        caller opened stay open; streams opened by ``FileContent.from_file``
        are closed once the upload is done.
        """
        if upload is None:
            raise MicroHttpValidationError("upload is required")
        try:
            ctx = _context_for(context, client_name, cancellation)
            body = self._codec.encode_multipart(upload)
            result = await self._send(HttpMethod.POST, url, body, ctx, response_type)
        except BaseException as e:
            await release_after_failure(_closer(upload), e, "upload files")
            raise
        upload.close_owned()
        return result

    async def get_stream(
        self,
        url: str,
        consumer: Callable[[ResponseStream], Awaitable[Any]],
        *,
        context: RequestContext | None = None,
        client_name: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        """GET ``url`` and let ``consumer`` read the body as it arrives.

        The stream is only valid while ``consumer`` runs; it is closed as
        soon as the consumer returns or raises.
        """
        if consumer is None:
            raise MicroHttpValidationError("consumer is required")
        ctx = _context_for(context, client_name, cancellation)
        await self._dispatcher.send_stream(HttpMethod.GET, url, ctx, consumer)

    async def get_json_stream(
        self,
        url: str,
        item_type: type[T],
        *,
        context: RequestContext | None = None,
        client_name: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> list[T]:
        """GET a JSON array through the streaming path and decode its items.

        A ``null`` body yields an empty list.
        """
        ctx = _context_for(context, client_name, cancellation)
        items: list[T] = []

        async def collect(stream: ResponseStream) -> None:
            payload = await stream.read()
            items.extend(self._codec.decode_sequence(payload, item_type))

        await self._dispatcher.send_stream(HttpMethod.GET, url, ctx, collect)
        return items

    async def execute_batch(
        self,
        batch: RequestBatch,
        *,
        context: RequestContext | None = None,
        cancellation: CancellationToken | None = None,
    ) -> BatchResults:
        """Run every request of ``batch`` concurrently.

        Items without their own context use ``context`` (or a default one).
        Individual failures are recorded in the results instead of raised.
        """
        if batch is None:
            raise MicroHttpValidationError("batch is required")
        ctx = _context_for(context, None, cancellation)
        return await self._batches.execute(batch, ctx)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _encode(self, data: Any) -> RequestBody:
        if data is None:
            raise MicroHttpValidationError("data is required for requests with a body")
        return self._codec.encode(data)

    async def _send(
        self,
        method: HttpMethod,
        url: str,
        body: RequestBody | None,
        context: RequestContext,
        response_type: type[T] | None,
    ) -> T | None:
        if not url:
            raise MicroHttpValidationError("url is required")
        if response_type is None:
            await self._dispatcher.send_void(method, url, body, context)
            return None
        return await self._dispatcher.send(method, url, body, context, response_type)


def _context_for(
    context: RequestContext | None,
    client_name: str | None,
    cancellation: CancellationToken | None,
) -> RequestContext:
    if context is not None:
        if client_name is not None or cancellation is not None:
            raise MicroHttpValidationError(
                "Pass either context or client_name/cancellation, not both"
            )
        return context
    return RequestContext(client_name=client_name, cancellation=cancellation)


def _closer(upload: FileUploadRequest) -> Callable[[], Awaitable[None]]:
    async def close() -> None:
        upload.close_owned()

    return close
