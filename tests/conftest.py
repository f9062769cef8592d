from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from unittest.mock import Mock

import httpx
import pytest

from sharedhttp.context import clear
from sharedhttp.core.config import TransportConfig

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def _reset_context() -> Generator[None, None, None]:
    """Make sure no identifiers leak between tests."""
    clear()
    yield
    clear()


@pytest.fixture
def config() -> TransportConfig:
    """Create a small, fast transport configuration for testing."""
    return TransportConfig(
        connect_timeout_ms=1_000,
        read_timeout_ms=1_000,
        max_connections=2,
        pending_acquire_timeout_ms=200,
        idle_timeout_ms=1_000,
        eviction_interval_ms=60_000,
    )


@pytest.fixture
def ok_transport() -> httpx.MockTransport:
    """Create a transport answering every request with a 200 JSON
    echo."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"method": request.method, "path": request.url.path})

    return httpx.MockTransport(handler)


@pytest.fixture
def log_records(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """Capture INFO records of the sharedhttp loggers."""
    caplog.set_level(logging.INFO, logger="sharedhttp")
    return caplog


@pytest.fixture
def mock_callback() -> Mock:
    """Create a mock callback function for testing callbacks."""
    return Mock()
