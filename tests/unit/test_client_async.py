r"""Unit tests for the AsyncWebClient context manager."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING
from unittest.mock import Mock

import httpx
import pytest

from sharedhttp import AsyncWebClient, HttpErrorResponse, RequestContext
from sharedhttp.context import bind_context
from sharedhttp.latency import LatencyRecorder
from sharedhttp.result import Failure, RecoveredFromError, Success
from tests.helpers import BASE_URL, Order, events, json_transport, status_transport

if TYPE_CHECKING:
    from sharedhttp.core.config import TransportConfig


####################################
#     Tests for AsyncWebClient     #
####################################


@pytest.mark.asyncio
async def test_async_client_context_manager_starts_and_stops_pool(
    config: TransportConfig, ok_transport: httpx.MockTransport
) -> None:
    async with AsyncWebClient(config, transport=ok_transport) as client:
        assert client.pool.is_started
    assert client.pool.is_closed


@pytest.mark.asyncio
async def test_async_client_get(
    config: TransportConfig, ok_transport: httpx.MockTransport
) -> None:
    async with AsyncWebClient(config, transport=ok_transport) as client:
        result = await client.get(BASE_URL, "/orders/1")
    assert result == Success({"method": "GET", "path": "/orders/1"})


@pytest.mark.asyncio
async def test_async_client_post(config: TransportConfig) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"code": "NEW", "id": 9})

    async with AsyncWebClient(config, transport=httpx.MockTransport(handler)) as client:
        result = await client.post(
            BASE_URL, "/orders", {"X-Api-Key": "k"}, {"sku": "A1"}, Order
        )
    assert result == Success(Order("NEW", 9))
    assert json.loads(seen[0].content) == {"sku": "A1"}
    assert seen[0].headers["x-api-key"] == "k"


@pytest.mark.asyncio
async def test_async_client_post_recovers(config: TransportConfig) -> None:
    transport = json_transport({"code": "DUP", "id": 42}, status_code=409)
    async with AsyncWebClient(config, transport=transport) as client:
        result = await client.post(BASE_URL, "/orders", payload={}, response_type=Order)
    assert isinstance(result, RecoveredFromError)
    assert result.unwrap() == Order("DUP", 42)


@pytest.mark.asyncio
async def test_async_client_get_list(config: TransportConfig) -> None:
    transport = json_transport([{"code": "A", "id": 1}, {"code": "B", "id": 2}])
    async with AsyncWebClient(config, transport=transport) as client:
        result = await client.get_list(BASE_URL, "/orders", element_type=Order)
    assert result.unwrap() == [Order("A", 1), Order("B", 2)]


@pytest.mark.asyncio
async def test_async_client_get_list_failure(config: TransportConfig) -> None:
    async with AsyncWebClient(config, transport=status_transport(502)) as client:
        result = await client.get_list(BASE_URL, "/orders", element_type=Order)
    assert isinstance(result, Failure)
    assert result.envelope.status_code == 502


@pytest.mark.asyncio
async def test_async_client_latency_recorder(
    config: TransportConfig, ok_transport: httpx.MockTransport
) -> None:
    recorder = LatencyRecorder()
    async with AsyncWebClient(config, transport=ok_transport, latency=recorder) as client:
        await client.get(BASE_URL, "/orders/1")
        await client.get(BASE_URL, "/orders/1")
        await client.get(BASE_URL, "/health")
    assert client.latency is recorder
    assert recorder.stats("/orders/1").count == 2
    assert recorder.stats("/health").count == 1


@pytest.mark.asyncio
async def test_async_client_callbacks(
    config: TransportConfig, ok_transport: httpx.MockTransport
) -> None:
    on_request, on_response = Mock(), Mock()
    async with AsyncWebClient(
        config, transport=ok_transport, on_request=on_request, on_response=on_response
    ) as client:
        await client.get(BASE_URL, "/orders/1")
    on_request.assert_called_once()
    on_response.assert_called_once()
    assert on_response.call_args.args[0].status_code == 200


@pytest.mark.asyncio
async def test_async_client_concurrent_calls_keep_their_context(
    config: TransportConfig,
    ok_transport: httpx.MockTransport,
    log_records: pytest.LogCaptureFixture,
) -> None:
    async def call(session_id: str) -> None:
        with bind_context(session_id=session_id, trace_id=f"T-{session_id}"):
            await client.get(BASE_URL, f"/orders/{session_id}")

    async with AsyncWebClient(config, transport=ok_transport) as client:
        await asyncio.gather(*(call(f"S{i}") for i in range(5)))

    records = events(log_records.records, "http.response")
    assert len(records) == 5
    for record in records:
        assert record.url.endswith(f"/orders/{record.session_id}")
        assert record.trace_id == f"T-{record.session_id}"


@pytest.mark.asyncio
async def test_async_client_explicit_context(
    config: TransportConfig,
    ok_transport: httpx.MockTransport,
    log_records: pytest.LogCaptureFixture,
) -> None:
    context = RequestContext(session_id="S1", trace_id="T1", span_id="P1")
    async with AsyncWebClient(config, transport=ok_transport) as client:
        await client.get(BASE_URL, "/orders/1", context=context)
    (record,) = events(log_records.records, "http.transport.response")
    assert (record.session_id, record.trace_id, record.span_id) == ("S1", "T1", "P1")


###############################
#     Tests for post_async    #
###############################


@pytest.mark.asyncio
async def test_async_client_post_async(config: TransportConfig) -> None:
    sink = Mock()
    transport = json_transport({"code": "NEW", "id": 1}, status_code=201)
    async with AsyncWebClient(
        config, transport=transport, latency=LatencyRecorder(sinks=[sink])
    ) as client:
        task = client.post_async(BASE_URL, "/orders", payload={}, response_type=Order)
        assert isinstance(task, asyncio.Task)
        assert await task == Order("NEW", 1)
    sink.assert_not_called()


@pytest.mark.asyncio
async def test_async_client_post_async_raises(config: TransportConfig) -> None:
    transport = json_transport({"code": "DUP", "id": 1}, status_code=409)
    async with AsyncWebClient(config, transport=transport) as client:
        with pytest.raises(HttpErrorResponse) as exc_info:
            await client.post_async(BASE_URL, "/orders", payload={}, response_type=Order)
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_async_client_call_after_close(
    config: TransportConfig, ok_transport: httpx.MockTransport
) -> None:
    client = AsyncWebClient(config, transport=ok_transport)
    await client.start()
    await client.aclose()
    with pytest.raises(RuntimeError, match=r"shut down"):
        await client.get(BASE_URL, "/orders/1")
