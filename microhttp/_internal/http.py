"""Shared HTTP client configuration and the named-client factory."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

import httpx

from microhttp._version import __version__
from microhttp.exceptions import MicroHttpConfigError

DEFAULT_TIMEOUT = 30.0
DEFAULT_CLIENT_NAME = ""


def create_http_client(
    *,
    timeout: float = DEFAULT_TIMEOUT,
    base_url: str | None = None,
    headers: Mapping[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create configured HTTP client.

    Args:
        timeout: Request timeout in seconds.
        base_url: Optional base URL for all requests.
        headers: Default headers sent with every request.
        transport: Optional transport override (mock transports in tests).

    Returns:
        Configured httpx.AsyncClient instance.
    """
    return httpx.AsyncClient(
        timeout=timeout,
        base_url=base_url or "",
        headers={"User-Agent": f"microhttp/{__version__}", **(headers or {})},
        transport=transport,
    )


@runtime_checkable
class ClientFactory(Protocol):
    """Looks up an HTTP client by name."""

    def create_client(self, name: str = DEFAULT_CLIENT_NAME) -> httpx.AsyncClient: ...


@dataclass(frozen=True)
class ClientSettings:
    """Construction settings for one named client."""

    base_url: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    headers: Mapping[str, str] = field(default_factory=dict)
    transport: httpx.AsyncBaseTransport | None = None


class HttpClientFactory:
    """Default ``ClientFactory``: lazily builds and caches one client per name.

    Names that were never registered get the default settings, so
    ``create_client("anything")`` always succeeds. Once a client has been
    created its settings are fixed; registering the same name again raises.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._defaults = ClientSettings(
            base_url=base_url,
            timeout=timeout,
            headers=dict(headers or {}),
            transport=transport,
        )
        self._settings: dict[str, ClientSettings] = {}
        self._clients: dict[str, httpx.AsyncClient] = {}

    def register(
        self,
        name: str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Register settings for a named client.

        Args:
            name: Client name used in ``RequestContext.client_name``.
            base_url: Base URL for relative request URLs.
            timeout: Timeout in seconds; defaults to the factory default.
            headers: Default headers for the client.
            transport: Optional transport override.

        Raises:
            MicroHttpConfigError: If a client with that name already exists.
        """
        if name in self._clients:
            raise MicroHttpConfigError(f"Client '{name}' is already in use")
        self._settings[name] = ClientSettings(
            base_url=base_url,
            timeout=self._defaults.timeout if timeout is None else timeout,
            headers=dict(headers or {}),
            transport=transport or self._defaults.transport,
        )

    def create_client(self, name: str = DEFAULT_CLIENT_NAME) -> httpx.AsyncClient:
        client = self._clients.get(name)
        if client is None:
            settings = self._settings.get(name, self._defaults)
            client = create_http_client(
                timeout=settings.timeout,
                base_url=settings.base_url,
                headers=settings.headers,
                transport=settings.transport,
            )
            self._clients[name] = client
        return client

    async def aclose(self) -> None:
        """Close every created client, then raise the first close failure."""
        clients = list(self._clients.values())
        self._clients.clear()
        first_error: Exception | None = None
        for client in clients:
            try:
                await client.aclose()
            except Exception as e:
                if first_error is None:
                    first_error = e
                else:
                    first_error.add_note(f"Closing another client also failed: {e!r}")
        if first_error is not None:
            raise first_error

    async def __aenter__(self) -> "HttpClientFactory":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
