r"""Construction of the httpx clients backing pooled connections.

Each pooled connection owns one ``httpx.AsyncClient`` restricted to a
single socket. The client enforces the connect and read timeouts on
every request, applies the TLS trust policy supplied by the caller, and
logs every request and response through its event hooks.
"""

from __future__ import annotations

__all__ = ["build_async_client", "log_transport_request", "log_transport_response"]

import logging
import ssl
from typing import TYPE_CHECKING

import httpx

from sharedhttp.utils.structured_logging import (
    TRANSPORT_REQUEST_EVENT,
    TRANSPORT_RESPONSE_EVENT,
    log_structured,
)

if TYPE_CHECKING:
    from sharedhttp.core.config import TransportConfig

logger: logging.Logger = logging.getLogger(__name__)

VerifyTypes = ssl.SSLContext | str | bool


async def log_transport_request(request: httpx.Request) -> None:
    log_structured(
        logger,
        logging.INFO,
        TRANSPORT_REQUEST_EVENT,
        method=request.method,
        url=str(request.url),
        headers=dict(request.headers),
    )


async def log_transport_response(response: httpx.Response) -> None:
    # Runs inside the task that issued the request, so the context
    # attached by the executor is the ambient one here.
    log_structured(
        logger,
        logging.INFO,
        TRANSPORT_RESPONSE_EVENT,
        status_code=response.status_code,
        url=str(response.request.url),
        headers=dict(response.headers),
    )


def build_async_client(
    config: TransportConfig,
    *,
    verify: VerifyTypes = True,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    r"""Create the ``httpx.AsyncClient`` of one pooled connection.

    Args:
        config: The transport configuration.
        verify: The TLS trust policy, passed to httpx untouched.
        transport: Optional transport replacing the network one, for
            example an ``httpx.MockTransport`` in tests.

    Returns:
        A client limited to one keep-alive socket that expires after
        ``config.idle_timeout`` seconds of inactivity.

    Example:
        ```pycon
        >>> from sharedhttp.core.config import TransportConfig
        >>> from sharedhttp.transport import build_async_client
        >>> client = build_async_client(TransportConfig(read_timeout_ms=2000))
        >>> client.timeout.read
        2.0

        ```
    """
    limits = httpx.Limits(
        max_connections=1,
        max_keepalive_connections=1,
        keepalive_expiry=config.idle_timeout,
    )
    kwargs = {"transport": transport} if transport is not None else {"verify": verify}
    return httpx.AsyncClient(
        timeout=config.to_timeout(),
        limits=limits,
        event_hooks={
            "request": [log_transport_request],
            "response": [log_transport_response],
        },
        **kwargs,
    )
