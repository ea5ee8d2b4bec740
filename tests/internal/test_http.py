"""Tests for HTTP client construction."""

import httpx
import pytest

from microhttp._internal.http import HttpClientFactory, create_http_client
from microhttp._version import __version__
from microhttp.exceptions import MicroHttpConfigError


class TestCreateHttpClient:
    """Tests for create_http_client."""

    def test_sets_user_agent(self):
        """Should identify the library in the User-Agent header."""
        client = create_http_client()
        assert client.headers["User-Agent"] == f"microhttp/{__version__}"

    def test_custom_headers_and_timeout(self):
        """Should apply extra headers and the timeout."""
        client = create_http_client(timeout=5.0, headers={"X-App": "demo"})
        assert client.headers["X-App"] == "demo"
        assert client.timeout.read == 5.0


class TestHttpClientFactory:
    """Tests for HttpClientFactory."""

    def test_same_name_returns_cached_client(self):
        """Should build each named client only once."""
        factory = HttpClientFactory()
        assert factory.create_client("api") is factory.create_client("api")
        assert factory.create_client("api") is not factory.create_client("other")

    def test_default_settings_apply_to_unknown_names(self):
        """Unregistered names should use the factory defaults."""
        factory = HttpClientFactory(base_url="https://api.test", timeout=7.0)
        client = factory.create_client("anything")
        assert client.base_url.host == "api.test"
        assert client.timeout.read == 7.0

    def test_registered_settings_are_used(self):
        """Registered names should use their own settings."""
        factory = HttpClientFactory(timeout=7.0)
        factory.register("billing", base_url="https://billing.test", headers={"X-Team": "b"})
        client = factory.create_client("billing")
        assert client.base_url.host == "billing.test"
        assert client.headers["X-Team"] == "b"
        assert client.timeout.read == 7.0

    def test_register_after_use_raises(self):
        """Settings cannot change once the client exists."""
        factory = HttpClientFactory()
        factory.create_client("api")
        with pytest.raises(MicroHttpConfigError):
            factory.register("api", base_url="https://api.test")

    def test_registered_client_inherits_transport(self):
        """Registered clients should fall back to the default transport."""
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        factory = HttpClientFactory(transport=transport)
        factory.register("api", base_url="https://api.test")
        assert factory.create_client("api")._transport is transport

    @pytest.mark.asyncio
    async def test_aclose_closes_clients(self):
        """Should close every client it created."""
        async with HttpClientFactory() as factory:
            client = factory.create_client()
        assert client.is_closed

    @pytest.mark.asyncio
    async def test_aclose_continues_after_failure(self, monkeypatch):
        """One failing client should not keep the others open."""
        factory = HttpClientFactory()
        broken = factory.create_client("broken")
        healthy = factory.create_client("healthy")

        async def fail() -> None:
            raise RuntimeError("close failed")

        monkeypatch.setattr(broken, "aclose", fail)

        with pytest.raises(RuntimeError, match="close failed"):
            await factory.aclose()
        assert healthy.is_closed
