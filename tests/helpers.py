r"""Shared test helpers.

This module contains fake downstream services, a controllable clock and
helpers to inspect the structured log records emitted by the client.
"""

from __future__ import annotations

__all__ = [
    "BASE_URL",
    "FakeClock",
    "dumps",
    "Order",
    "events",
    "json_transport",
    "status_transport",
]

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    import logging

BASE_URL = "https://orders.internal"


@dataclass
class Order:
    code: str
    id: int


class FakeClock:
    """Monotonic clock moved by hand."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def json_transport(body: Any, status_code: int = 200) -> httpx.MockTransport:
    """Create a transport answering every request with ``body`` as
    JSON."""
    return httpx.MockTransport(lambda request: httpx.Response(status_code, json=body))


def status_transport(
    status_code: int, content: bytes | str = b"", headers: dict[str, str] | None = None
) -> httpx.MockTransport:
    """Create a transport answering every request with a raw body."""
    return httpx.MockTransport(
        lambda request: httpx.Response(status_code, content=content, headers=headers)
    )


def events(records: list[logging.LogRecord], name: str) -> list[logging.LogRecord]:
    """Return the records of one structured event, in emission order."""
    return [record for record in records if record.getMessage() == name]


def dumps(value: Any) -> bytes:
    return json.dumps(value).encode()
