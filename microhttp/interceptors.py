"""Interceptor protocols for the request/response pipeline.

Interceptors are attached to a ``RequestContext`` and run in order around
the transport call. Each step may return the message it received (after
mutating it) or a brand-new message. When a new message is returned the
pipeline releases the old one; interceptors must not close it themselves.
"""

from typing import Protocol, runtime_checkable

import httpx


@runtime_checkable
class RequestInterceptor(Protocol):
    """Transforms an outgoing request before it is sent."""

    async def process_request(self, request: httpx.Request) -> httpx.Request: ...


@runtime_checkable
class ResponseInterceptor(Protocol):
    """Transforms a response before its status is validated."""

    async def process_response(self, response: httpx.Response) -> httpx.Response: ...
