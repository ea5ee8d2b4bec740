"""Live response body handed to stream consumers."""

from collections.abc import AsyncIterator

import httpx

from microhttp.exceptions import TransportError


class ResponseStream:
    """Async byte stream over an open response body.

    Consumers iterate it (``async for chunk in stream``) or call ``read()``
    to collect whatever is left. The dispatcher closes it once the consumer
    is done; consumers may close it early themselves.
    """

    def __init__(self, response: httpx.Response, chunk_size: int | None = None) -> None:
        self._chunks = response.aiter_bytes(chunk_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._chunks.__anext__()
        except httpx.HTTPError as e:
            raise TransportError(f"Reading response stream failed: {e}") from e

    async def read(self) -> bytes:
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._chunks.aclose()
