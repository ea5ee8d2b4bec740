"""Redaction of sensitive header and query values in debug output."""

from collections.abc import Iterable
from urllib.parse import parse_qsl, urlencode

import httpx

REDACT_KEYS: frozenset[str] = frozenset({
    "api_key",
    "api-key",
    "apikey",
    "x-api-key",
    "token",
    "access_token",
    "refresh_token",
    "auth_token",
    "x-auth-token",
    "secret",
    "client_secret",
    "password",
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "signature",
})

REDACTED_VALUE = "[REDACTED]"


def _is_sensitive(name: str) -> bool:
    return name.lower() in REDACT_KEYS


def redact_headers(headers: httpx.Headers | Iterable[tuple[str, str]]) -> dict[str, str]:
    """Copy headers with sensitive values replaced by "[REDACTED]".

    The original headers are never mutated. Repeated headers are joined
    with ", " the way they would be folded on the wire.
    """
    items = headers.multi_items() if isinstance(headers, httpx.Headers) else headers
    result: dict[str, str] = {}
    for name, value in items:
        shown = REDACTED_VALUE if _is_sensitive(name) else value
        result[name] = f"{result[name]}, {shown}" if name in result else shown
    return result


def redact_url(url: httpx.URL | str) -> str:
    """Render a URL with sensitive query parameter values redacted."""
    url = httpx.URL(url)
    if not url.query:
        return str(url)
    params = [
        (key, REDACTED_VALUE if _is_sensitive(key) else value)
        for key, value in parse_qsl(url.query.decode("ascii"), keep_blank_values=True)
    ]
    return str(url.copy_with(query=urlencode(params, safe="[]").encode("ascii")))
