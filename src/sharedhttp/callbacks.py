r"""Observer hooks for the request pipeline.

Callbacks are the extension point where callers layer their own
policies (metrics, alerting, retry bookkeeping) on top of the client.
Each hook receives a frozen info object.

Example:
    ```pycon
    >>> from sharedhttp import WebClient
    >>> from sharedhttp.callbacks import ErrorInfo
    >>> def alert(info: ErrorInfo) -> None:
    ...     print(f"{info.method} {info.url} failed with {info.status_code}")
    ...
    >>> client = WebClient(on_error=alert)  # doctest: +SKIP

    ```
"""

from __future__ import annotations

__all__ = [
    "Callbacks",
    "ErrorInfo",
    "RequestInfo",
    "ResponseInfo",
    "invoke_callback",
]

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from sharedhttp.context import RequestContext
    from sharedhttp.result import ErrorEnvelope

InfoT = TypeVar("InfoT")


@dataclass(frozen=True)
class RequestInfo:
    """Information passed to the ``on_request`` callback.

    Attributes:
        method: The HTTP method.
        url: The full URL (base URL and path).
        headers: The caller-supplied headers.
        payload: The request payload, ``None`` for GET.
        context: The correlation identifiers of the call.
    """

    method: str
    url: str
    headers: dict[str, str]
    payload: Any
    context: RequestContext


@dataclass(frozen=True)
class ResponseInfo:
    """Information passed to the ``on_response`` callback.

    Attributes:
        method: The HTTP method.
        url: The full URL.
        status_code: The HTTP status of the response.
        value: The decoded value.
        context: The correlation identifiers of the call.
    """

    method: str
    url: str
    status_code: int
    value: Any
    context: RequestContext


@dataclass(frozen=True)
class ErrorInfo:
    """Information passed to the ``on_error`` callback.

    Attributes:
        method: The HTTP method.
        url: The full URL.
        status_code: The HTTP status, ``None`` for transport failures.
        envelope: The captured error.
        recovered: Whether a typed payload was recovered from the body.
        context: The correlation identifiers of the call.
    """

    method: str
    url: str
    status_code: int | None
    envelope: ErrorEnvelope
    recovered: bool
    context: RequestContext


@dataclass(frozen=True)
class Callbacks:
    """Bundle of optional pipeline hooks."""

    on_request: Callable[[RequestInfo], None] | None = None
    on_response: Callable[[ResponseInfo], None] | None = None
    on_error: Callable[[ErrorInfo], None] | None = None


def invoke_callback(callback: Callable[[InfoT], None] | None, info: InfoT) -> None:
    """Invoke ``callback`` with ``info`` if it is provided.

    Args:
        callback: The optional callback.
        info: The info object to pass.
    """
    if callback is not None:
        callback(info)
