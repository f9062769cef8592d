r"""Blocking client for outbound HTTP calls.

``WebClient`` is the façade most callers use. Every call captures the
session/trace/span identifiers of the calling thread, runs the request
on a background event loop and blocks until the outcome is known.
``post_async`` returns a ``concurrent.futures.Future`` immediately
instead.
"""

from __future__ import annotations

__all__ = ["WebClient"]

import logging
from typing import TYPE_CHECKING, Any

from sharedhttp.client_async import AsyncWebClient
from sharedhttp.context import capture
from sharedhttp.core.config import TransportConfig
from sharedhttp.runtime import EventLoopRuntime

if TYPE_CHECKING:
    import concurrent.futures
    from collections.abc import Callable, Mapping
    from types import TracebackType
    from typing import Self

    import httpx

    from sharedhttp.callbacks import ErrorInfo, RequestInfo, ResponseInfo
    from sharedhttp.latency import LatencyRecorder
    from sharedhttp.pool import ConnectionPool
    from sharedhttp.recovery import ErrorRecovery
    from sharedhttp.result import ExecutionResult
    from sharedhttp.transport import VerifyTypes

logger: logging.Logger = logging.getLogger(__name__)


class WebClient:
    r"""Blocking client sharing one connection pool across callers.

    The client is safe to use from many threads at once: the pool lives
    on the runtime's event loop and bounds the number of connections per
    target.

    Args:
        config: The transport configuration. Defaults to
            ``TransportConfig()``.
        name: Name of the connection pool and of the loop thread.
        verify: TLS trust policy for every connection.
        transport: Optional transport replacing the network, for tests.
        latency: Optional latency recorder, e.g. one with sinks.
        recovery: Optional error recovery policy.
        on_request: Optional callback called before each call.
        on_response: Optional callback called after a 2xx answer.
        on_error: Optional callback called after each failed call.

    Example:
        ```pycon
        >>> from sharedhttp import WebClient, bind_context
        >>> from sharedhttp.core.config import resolve
        >>> with WebClient(resolve({"maxConnection": 20})) as client:  # doctest: +SKIP
        ...     with bind_context(session_id="S1", trace_id="T1", span_id="P1"):
        ...         result = client.get("https://api.example.com", "/orders/1")
        ...     order = result.unwrap()
        ...

        ```
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        *,
        name: str = "sharedhttp",
        verify: VerifyTypes = True,
        transport: httpx.AsyncBaseTransport | None = None,
        latency: LatencyRecorder | None = None,
        recovery: ErrorRecovery | None = None,
        on_request: Callable[[RequestInfo], None] | None = None,
        on_response: Callable[[ResponseInfo], None] | None = None,
        on_error: Callable[[ErrorInfo], None] | None = None,
    ) -> None:
        self._runtime = EventLoopRuntime(name=f"{name}-io")
        self._closed = False
        self._client = AsyncWebClient(
            config or TransportConfig(),
            name=name,
            verify=verify,
            transport=transport,
            latency=latency,
            recovery=recovery,
            on_request=on_request,
            on_response=on_response,
            on_error=on_error,
        )

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def pool(self) -> ConnectionPool:
        return self._client.pool

    @property
    def latency(self) -> LatencyRecorder:
        return self._client.latency

    def start(self) -> None:
        """Start the event loop and the pool's eviction job.

        Raises:
            RuntimeError: If the client has been closed.
        """
        if self._closed:
            msg = "the client is closed"
            raise RuntimeError(msg)
        if self._runtime.is_running:
            return
        self._runtime.start()
        self._runtime.run(self._client.start())

    def close(self) -> None:
        """Shut the pool down and stop the event loop.

        Calls still in flight are cancelled: blocked callers get a
        ``RuntimeError`` and pending ``post_async`` futures are cancelled.
        """
        if self._closed:
            return
        self._closed = True
        if not self._runtime.is_running:
            return
        try:
            self._runtime.run(self._client.aclose())
        finally:
            self._runtime.stop()

    def post(
        self,
        base_url: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        payload: Any = None,
        response_type: Any = Any,
    ) -> ExecutionResult[Any]:
        r"""Send a POST request and block until it completes.

        Args:
            base_url: The base URL.
            path: The path appended to ``base_url``; also the latency key.
            headers: Caller-supplied headers.
            payload: The JSON payload.
            response_type: The declared response type.

        Returns:
            ``Success``, ``RecoveredFromError`` or ``Failure``.

        Example:
            ```pycon
            >>> from sharedhttp import WebClient
            >>> with WebClient() as client:  # doctest: +SKIP
            ...     result = client.post("https://api.example.com", "/orders", payload={"sku": "A1"})
            ...

            ```
        """
        self.start()
        return self._runtime.run(
            self._client.post(base_url, path, headers, payload, response_type, context=capture())
        )

    def get(
        self,
        base_url: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        response_type: Any = Any,
    ) -> ExecutionResult[Any]:
        """Send a GET request and block until it completes.

        See ``post`` for the arguments.
        """
        self.start()
        return self._runtime.run(
            self._client.get(base_url, path, headers, response_type, context=capture())
        )

    def get_list(
        self,
        base_url: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        element_type: Any = Any,
    ) -> ExecutionResult[list[Any]]:
        """Send a GET request, collect the sequence, and block until it
        completes.

        The result holds either every element, in order, or a failure.
        """
        self.start()
        return self._runtime.run(
            self._client.get_list(base_url, path, headers, element_type, context=capture())
        )

    def post_async(
        self,
        base_url: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        payload: Any = None,
        response_type: Any = Any,
    ) -> concurrent.futures.Future[Any]:
        """Start a POST request without waiting for it.

        This is a raw passthrough: no context attachment, no error
        recovery and no latency recording.

        Returns:
            A future resolving to the decoded body, or raising
            ``HttpRequestError``.
        """
        self.start()
        return self._runtime.submit(
            self._client.send(
                "POST",
                base_url + path,
                headers=headers,
                payload=payload,
                response_type=response_type,
            )
        )
