r"""Asynchronous context manager client for outbound HTTP calls.

``AsyncWebClient`` is the async-native façade over the request
pipeline. It owns a ``ConnectionPool`` for its whole lifetime and
exposes the four call shapes as coroutines.
"""

from __future__ import annotations

__all__ = ["AsyncWebClient"]

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from sharedhttp.callbacks import Callbacks
from sharedhttp.core.config import TransportConfig
from sharedhttp.executor import RequestExecutor
from sharedhttp.latency import LatencyRecorder
from sharedhttp.pool import ConnectionPool
from sharedhttp.recovery import ErrorRecovery

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from types import TracebackType
    from typing import Self

    import httpx

    from sharedhttp.callbacks import ErrorInfo, RequestInfo, ResponseInfo
    from sharedhttp.context import RequestContext
    from sharedhttp.result import ExecutionResult
    from sharedhttp.transport import VerifyTypes

logger: logging.Logger = logging.getLogger(__name__)


class AsyncWebClient:
    r"""Asynchronous client for outbound HTTP calls.

    Args:
        config: The transport configuration. Defaults to
            ``TransportConfig()``.
        name: Name of the connection pool.
        verify: TLS trust policy for every connection.
        transport: Optional transport replacing the network, for tests.
        latency: Optional latency recorder, e.g. one with sinks.
        recovery: Optional error recovery policy.
        on_request: Optional callback called before each call.
        on_response: Optional callback called after a 2xx answer.
        on_error: Optional callback called after each failed call.

    Example:
        ```pycon
        >>> import asyncio
        >>> from sharedhttp import AsyncWebClient
        >>> async def main():  # doctest: +SKIP
        ...     async with AsyncWebClient() as client:
        ...         result = await client.get("https://api.example.com", "/orders/1")
        ...         return result.unwrap()
        ...
        >>> asyncio.run(main())  # doctest: +SKIP

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
        self._pool = ConnectionPool(
            config or TransportConfig(), name=name, verify=verify, transport=transport
        )
        self._executor = RequestExecutor(
            self._pool,
            recovery=recovery,
            latency=latency,
            callbacks=Callbacks(on_request=on_request, on_response=on_response, on_error=on_error),
        )

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    @property
    def latency(self) -> LatencyRecorder:
        return self._executor.latency

    async def start(self) -> None:
        await self._pool.start()

    async def aclose(self) -> None:
        await self._pool.shutdown()

    async def post(
        self,
        base_url: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        payload: Any = None,
        response_type: Any = Any,
        *,
        context: RequestContext | None = None,
    ) -> ExecutionResult[Any]:
        r"""Send a POST request and decode a single object.

        Args:
            base_url: The base URL.
            path: The path appended to ``base_url``; also the latency key.
            headers: Caller-supplied headers.
            payload: The JSON payload.
            response_type: The declared response type.
            context: The correlation identifiers; captured from the
                current task when ``None``.

        Returns:
            ``Success``, ``RecoveredFromError`` or ``Failure``.
        """
        return await self._executor.execute(
            "POST",
            base_url,
            path,
            headers=headers,
            payload=payload,
            response_type=response_type,
            context=context,
        )

    async def get(
        self,
        base_url: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        response_type: Any = Any,
        *,
        context: RequestContext | None = None,
    ) -> ExecutionResult[Any]:
        """Send a GET request and decode a single object.

        See ``post`` for the arguments.
        """
        return await self._executor.execute(
            "GET",
            base_url,
            path,
            headers=headers,
            response_type=response_type,
            context=context,
        )

    async def get_list(
        self,
        base_url: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        element_type: Any = Any,
        *,
        context: RequestContext | None = None,
    ) -> ExecutionResult[list[Any]]:
        """Send a GET request and collect a sequence into a list.

        The result holds either every element, in order, or a failure.

        Args:
            base_url: The base URL.
            path: The path appended to ``base_url``; also the latency key.
            headers: Caller-supplied headers.
            element_type: The declared type of each element.
            context: The correlation identifiers.

        Returns:
            ``Success``, ``RecoveredFromError`` or ``Failure``.
        """
        return await self._executor.execute(
            "GET",
            base_url,
            path,
            headers=headers,
            response_type=element_type,
            many=True,
            context=context,
        )

    def post_async(
        self,
        base_url: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        payload: Any = None,
        response_type: Any = Any,
    ) -> asyncio.Task[Any]:
        """Start a POST request and return immediately.

        This is a raw passthrough: no context attachment, no error
        recovery and no latency recording. The task raises
        ``HttpRequestError`` on failure.

        Returns:
            A task resolving to the decoded body.
        """
        return asyncio.get_running_loop().create_task(
            self.send(
                "POST",
                base_url + path,
                headers=headers,
                payload=payload,
                response_type=response_type,
            )
        )

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        payload: Any = None,
        response_type: Any = Any,
    ) -> Any:
        """Send one request and return its decoded body.

        Raises:
            HttpRequestError: On any failure, including non-2xx answers.
        """
        return await self._executor.send(
            method, url, headers=headers, payload=payload, response_type=response_type
        )
