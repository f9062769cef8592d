r"""Translation of httpx failures into the ``sharedhttp`` error
taxonomy.

httpx raises a rich hierarchy of exceptions; callers of the client only
need to distinguish a handful of kinds. The functions below perform
that mapping in one place and always chain the original exception.
"""

from __future__ import annotations

__all__ = ["error_from_response", "translate_transport_error"]

import logging

import httpx

from sharedhttp.exceptions import (
    ConnectTimeoutError,
    HttpErrorResponse,
    HttpRequestError,
    ReadTimeoutError,
    UnknownTransportError,
)

logger: logging.Logger = logging.getLogger(__name__)


def translate_transport_error(exc: httpx.HTTPError, *, method: str, url: str) -> HttpRequestError:
    """Map a low-level httpx exception onto the error taxonomy.

    Args:
        exc: The exception raised by httpx.
        method: The HTTP method, used in the error message.
        url: The requested URL, used in the error message.

    Returns:
        The taxonomy error, with ``exc`` recorded as its cause. The
        caller is expected to ``raise ... from exc``.

    Example:
        ```pycon
        >>> import httpx
        >>> from sharedhttp.utils.exceptions import translate_transport_error
        >>> error = translate_transport_error(
        ...     httpx.ConnectTimeout("too slow"), method="GET", url="https://example.com"
        ... )
        >>> type(error).__name__
        'ConnectTimeoutError'

        ```
    """
    error_type = type(exc).__name__
    logger.debug(f"{method} request to {url} raised {error_type}: {exc}")
    if isinstance(exc, httpx.ConnectTimeout):
        return ConnectTimeoutError(
            method=method,
            url=url,
            message=f"{method} request to {url} timed out while connecting",
            cause=exc,
        )
    if isinstance(exc, (httpx.ReadTimeout, httpx.WriteTimeout)):
        return ReadTimeoutError(
            method=method,
            url=url,
            message=f"{method} request to {url} timed out waiting for the response",
            cause=exc,
        )
    return UnknownTransportError(
        method=method,
        url=url,
        message=f"{method} request to {url} failed with {error_type}: {exc}",
        cause=exc,
    )


def error_from_response(response: httpx.Response, *, method: str, url: str) -> HttpErrorResponse:
    """Build the error for a response with a non-2xx status.

    The body must already have been read.

    Args:
        response: The received response.
        method: The HTTP method, used in the error message.
        url: The requested URL, used in the error message.

    Returns:
        An ``HttpErrorResponse`` carrying status, body and response.
    """
    reason = response.reason_phrase or "Error"
    return HttpErrorResponse(
        method=method,
        url=url,
        message=f"{response.status_code} {reason} from {method} {url}",
        status_code=response.status_code,
        body=response.text,
        response=response,
    )
