r"""The request-execution pipeline.

``RequestExecutor.execute`` runs one call end to end on the event loop:

1. start the clock and attach the captured ``RequestContext``;
2. log the outbound request;
3. borrow a connection, send the request and read the whole body;
4. on a 2xx answer decode the body and log it, otherwise hand the
   captured error to ``ErrorRecovery``;
5. record the latency of the path, whatever the outcome.

``RequestExecutor.send`` is the thin passthrough behind ``post_async``:
no context attachment, no recovery, no latency; failures are raised.
"""

from __future__ import annotations

__all__ = ["RequestExecutor"]

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx
import pydantic

from sharedhttp.callbacks import (
    Callbacks,
    ErrorInfo,
    RequestInfo,
    ResponseInfo,
    invoke_callback,
)
from sharedhttp.context import capture, restore
from sharedhttp.decoding import decode_body, decode_list
from sharedhttp.exceptions import DeserializationError, HttpRequestError
from sharedhttp.latency import LatencyRecorder
from sharedhttp.recovery import ErrorRecovery
from sharedhttp.result import ErrorEnvelope, ExecutionResult, Success
from sharedhttp.utils.exceptions import error_from_response, translate_transport_error
from sharedhttp.utils.structured_logging import REQUEST_EVENT, RESPONSE_EVENT, log_structured

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sharedhttp.context import RequestContext
    from sharedhttp.pool import ConnectionPool

logger: logging.Logger = logging.getLogger(__name__)

# Sentinel telling GET apart from a POST whose payload is None
NO_PAYLOAD: Any = object()


class RequestExecutor:
    r"""Execute calls through a connection pool.

    Args:
        pool: The connection pool to borrow connections from.
        recovery: The error recovery policy. Defaults to
            ``ErrorRecovery()``.
        latency: The latency recorder. Defaults to ``LatencyRecorder()``.
        callbacks: Optional observer hooks.

    Example:
        ```pycon
        >>> import asyncio
        >>> import httpx
        >>> from sharedhttp.executor import RequestExecutor
        >>> from sharedhttp.pool import ConnectionPool
        >>> transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"id": 1}))
        >>> async def main():
        ...     pool = ConnectionPool(transport=transport)
        ...     executor = RequestExecutor(pool)
        ...     result = await executor.execute("GET", "https://api.example.com", "/orders/1")
        ...     await pool.shutdown()
        ...     return result
        ...
        >>> asyncio.run(main())
        Success(value={'id': 1})

        ```
    """

    def __init__(
        self,
        pool: ConnectionPool,
        *,
        recovery: ErrorRecovery | None = None,
        latency: LatencyRecorder | None = None,
        callbacks: Callbacks | None = None,
    ) -> None:
        self._pool = pool
        self._recovery = recovery or ErrorRecovery()
        self._latency = latency or LatencyRecorder()
        self._callbacks = callbacks or Callbacks()

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    @property
    def latency(self) -> LatencyRecorder:
        return self._latency

    async def execute(
        self,
        method: str,
        base_url: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        payload: Any = NO_PAYLOAD,
        response_type: Any = Any,
        many: bool = False,
        context: RequestContext | None = None,
    ) -> ExecutionResult[Any]:
        """Run one call through the full pipeline.

        Args:
            method: The HTTP method.
            base_url: The base URL; the request goes to ``base_url + path``.
            path: The path, also the key of the latency measurement.
            headers: Caller-supplied headers.
            payload: The JSON payload; omitted for GET.
            response_type: The declared response type, or the element
                type when ``many`` is true.
            many: Whether the body is a sequence to collect into a list.
            context: The context captured on the calling thread. When
                ``None`` it is captured from the current task.

        Returns:
            ``Success``, ``RecoveredFromError`` or ``Failure``.
        """
        start_time = time.perf_counter()
        url = base_url + path
        context = context or capture()
        headers = dict(headers or {})
        try:
            with restore(context):
                log_structured(
                    logger,
                    logging.INFO,
                    REQUEST_EVENT,
                    method=method,
                    url=url,
                    payload=None if payload is NO_PAYLOAD else payload,
                    headers=headers,
                )
                invoke_callback(
                    self._callbacks.on_request,
                    RequestInfo(
                        method=method,
                        url=url,
                        headers=headers,
                        payload=None if payload is NO_PAYLOAD else payload,
                        context=context,
                    ),
                )
                try:
                    response, value = await self._exchange(
                        method, url, headers, payload, response_type, many
                    )
                except HttpRequestError as exc:
                    envelope = ErrorEnvelope.from_error(exc)
                    content_type = (
                        exc.response.headers.get("content-type")
                        if exc.response is not None
                        else None
                    )
                    result = self._recovery.recover(
                        envelope, response_type, many=many, content_type=content_type
                    )
                    invoke_callback(
                        self._callbacks.on_error,
                        ErrorInfo(
                            method=method,
                            url=url,
                            status_code=envelope.status_code,
                            envelope=envelope,
                            recovered=result.recovered,
                            context=context,
                        ),
                    )
                    return result
                log_structured(
                    logger,
                    logging.INFO,
                    RESPONSE_EVENT,
                    method=method,
                    url=url,
                    status_code=response.status_code,
                    headers=dict(response.headers),
                    body=value,
                )
                invoke_callback(
                    self._callbacks.on_response,
                    ResponseInfo(
                        method=method,
                        url=url,
                        status_code=response.status_code,
                        value=value,
                        context=context,
                    ),
                )
                return Success(value)
        finally:
            with restore(context):
                self._latency.record(path, (time.perf_counter() - start_time) * 1000)

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        payload: Any = NO_PAYLOAD,
        response_type: Any = Any,
    ) -> Any:
        """Send one request and decode its body, raising on failure.

        Args:
            method: The HTTP method.
            url: The full URL.
            headers: Caller-supplied headers.
            payload: The JSON payload.
            response_type: The declared response type.

        Returns:
            The decoded body.

        Raises:
            HttpRequestError: On any failure; non-2xx answers raise
                ``HttpErrorResponse``.
        """
        _, value = await self._exchange(
            method, url, dict(headers or {}), payload, response_type, False
        )
        return value

    async def _exchange(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        payload: Any,
        response_type: Any,
        many: bool,
    ) -> tuple[httpx.Response, Any]:
        kwargs: dict[str, Any] = {"headers": headers}
        if payload is not NO_PAYLOAD:
            kwargs["json"] = payload
        connection = await self._pool.acquire(url, method=method)
        try:
            async with connection.client.stream(method, url, **kwargs) as response:
                # Collect the full body; a sequence is never delivered partially
                await response.aread()
        except httpx.HTTPError as exc:
            raise translate_transport_error(exc, method=method, url=url) from exc
        finally:
            await self._pool.release(connection)

        if not response.is_success:
            raise error_from_response(response, method=method, url=url)
        try:
            if many:
                value = decode_list(
                    response.content, response_type, response.headers.get("content-type")
                )
            else:
                value = decode_body(response.content, response_type)
        except (pydantic.ValidationError, ValueError) as exc:
            raise DeserializationError(
                method=method,
                url=url,
                message=f"{method} {url} returned a body that does not decode: {exc}",
                status_code=response.status_code,
                body=response.text,
                response=response,
                cause=exc,
            ) from exc
        return response, value
