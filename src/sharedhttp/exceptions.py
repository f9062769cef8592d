r"""Error taxonomy for outbound HTTP calls.

Every failure surfaced by ``sharedhttp`` is an ``HttpRequestError``
subclass, so callers can catch the whole family at once while still
telling local resource pressure (``PoolExhaustedError``) apart from a
downstream that answered with an error status (``HttpErrorResponse``).
"""

from __future__ import annotations

__all__ = [
    "ConnectTimeoutError",
    "DeserializationError",
    "HttpErrorResponse",
    "HttpRequestError",
    "PoolExhaustedError",
    "ReadTimeoutError",
    "UnknownTransportError",
]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


class HttpRequestError(RuntimeError):
    r"""Base class for all errors raised while executing an HTTP call.

    Args:
        method: The HTTP method of the failed call.
        url: The URL of the failed call.
        message: A descriptive error message.
        status_code: The HTTP status code, if a response was received.
        body: The raw response body, if one was received.
        response: The ``httpx.Response``, if one was received.
        cause: The lower-level exception, if any.

    Example:
        ```pycon
        >>> from sharedhttp.exceptions import HttpRequestError
        >>> exc = HttpRequestError(method="GET", url="https://example.com", message="boom")
        >>> exc.method, exc.status_code, exc.body
        ('GET', None, '')

        ```
    """

    def __init__(
        self,
        method: str,
        url: str,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
        response: httpx.Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.message = message
        self.status_code = status_code
        self.body = body
        self.response = response
        self.cause = cause


class PoolExhaustedError(HttpRequestError):
    """Raised when no pooled connection became available in time.

    This reflects local resource pressure only, not a failure of the
    downstream service.
    """


class ConnectTimeoutError(HttpRequestError):
    """Raised when establishing the connection took too long."""


class ReadTimeoutError(HttpRequestError):
    """Raised when the response did not arrive within the read
    timeout."""


class HttpErrorResponse(HttpRequestError):
    r"""Raised when the downstream answered with a non-2xx status.

    Example:
        ```pycon
        >>> from sharedhttp.exceptions import HttpErrorResponse
        >>> exc = HttpErrorResponse(
        ...     method="POST",
        ...     url="https://example.com/orders",
        ...     message="409 Conflict",
        ...     status_code=409,
        ...     body='{"code": "DUP"}',
        ... )
        >>> exc.status_code
        409

        ```
    """


class DeserializationError(HttpRequestError):
    """Raised when a response body cannot be decoded into the declared
    type."""


class UnknownTransportError(HttpRequestError):
    """Raised for any other transport-level failure (connection reset,
    protocol error, ...)."""
