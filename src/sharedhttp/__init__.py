r"""sharedhttp - Shared outbound HTTP client with pooled connections.

This package gives every internal caller the same way of reaching
downstream services: a bounded pool of reusable connections, connect and
read timeouts, session/trace/span identifiers carried across the async
boundary into every log record, a uniform contract for non-2xx answers,
and per-endpoint latency measurement. Built on top of httpx.

Key Features:
    - Bounded connection pool per target with idle eviction in the background
    - Connect, read and pending-acquire timeouts resolved from a key-value source
    - Blocking façade (``WebClient``) over a background event loop, plus an
      async-native client (``AsyncWebClient``)
    - Tagged results: ``Success``, ``RecoveredFromError`` and ``Failure``
    - Typed payloads recovered from structured error bodies
    - Structured log events and latency recorded on every exit path

Example:
    ```pycon
    >>> from sharedhttp import WebClient, bind_context
    >>> from sharedhttp.core.config import DEFAULT_KEY_PREFIX, resolve
    >>> import os
    >>> config = resolve(os.environ, prefix=DEFAULT_KEY_PREFIX)
    >>> with WebClient(config) as client:  # doctest: +SKIP
    ...     with bind_context(session_id="S1", trace_id="T1", span_id="P1"):
    ...         result = client.post("https://api.example.com", "/orders", payload={"sku": "A1"})
    ...     if result.recovered:
    ...         print("downstream answered with", result.envelope.status_code)
    ...

    ```
"""

from __future__ import annotations

__all__ = [
    "AsyncWebClient",
    "ConnectTimeoutError",
    "DeserializationError",
    "ErrorEnvelope",
    "ExecutionResult",
    "Failure",
    "HttpErrorResponse",
    "HttpRequestError",
    "PoolExhaustedError",
    "ReadTimeoutError",
    "RecoveredFromError",
    "RequestContext",
    "Success",
    "TransportConfig",
    "UnknownTransportError",
    "WebClient",
    "__version__",
    "bind_context",
    "resolve_transport_config",
]

from importlib.metadata import PackageNotFoundError, version

from sharedhttp.client import WebClient
from sharedhttp.client_async import AsyncWebClient
from sharedhttp.context import RequestContext, bind_context
from sharedhttp.core.config import TransportConfig
from sharedhttp.core.config import resolve as resolve_transport_config
from sharedhttp.exceptions import (
    ConnectTimeoutError,
    DeserializationError,
    HttpErrorResponse,
    HttpRequestError,
    PoolExhaustedError,
    ReadTimeoutError,
    UnknownTransportError,
)
from sharedhttp.result import ErrorEnvelope, ExecutionResult, Failure, RecoveredFromError, Success

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
