"""Public exceptions for microhttp."""

from typing import Any


class MicroHttpError(Exception):
    """Base exception for all microhttp errors."""


class MicroHttpConfigError(MicroHttpError):
    """Configuration error (invalid env vars, invalid client registration)."""


class MicroHttpValidationError(MicroHttpError, ValueError):
    """Invalid call arguments, raised before anything is sent."""


class EncodingError(MicroHttpError):
    """A request payload could not be serialized."""

    def __init__(self, message: str, value: Any = None) -> None:
        super().__init__(message)
        self.value = value


class DecodingError(MicroHttpError):
    """A response body could not be turned into a usable instance."""

    def __init__(
        self,
        message: str,
        raw_text: str | None = None,
        target: Any = None,
    ) -> None:
        super().__init__(message)
        self.raw_text = raw_text
        self.target = target


class HttpStatusError(MicroHttpError):
    """Response finished with a non-success status code."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url


class TransportError(MicroHttpError):
    """The underlying HTTP transport failed.

    The original ``httpx`` exception is kept as ``__cause__``.
    """
