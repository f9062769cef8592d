r"""Transport tuning configuration and its defaults.

This module provides the configuration keys read from the external
key-value source, their default values, and the immutable
``TransportConfig`` dataclass shared read-only by the connection pool.
"""

from __future__ import annotations

__all__ = [
    "CONFIG_KEYS",
    "CONNECT_TIMEOUT_KEY",
    "DEFAULT_CONNECT_TIMEOUT_MS",
    "DEFAULT_EVICTION_INTERVAL_MS",
    "DEFAULT_IDLE_TIMEOUT_MS",
    "DEFAULT_KEY_PREFIX",
    "DEFAULT_MAX_CONNECTIONS",
    "DEFAULT_PENDING_ACQUIRE_TIMEOUT_MS",
    "DEFAULT_READ_TIMEOUT_MS",
    "EVICTION_INTERVAL_KEY",
    "IDLE_TIMEOUT_KEY",
    "MAX_CONNECTIONS_KEY",
    "PENDING_ACQUIRE_TIMEOUT_KEY",
    "READ_TIMEOUT_KEY",
    "TransportConfig",
    "resolve",
]

from dataclasses import dataclass, fields, replace
from typing import TYPE_CHECKING, Any

import httpx

from sharedhttp.core.validation import coerce_int, validate_positive

if TYPE_CHECKING:
    from collections.abc import Mapping


# Configuration keys, relative to the prefix passed to ``resolve``
CONNECT_TIMEOUT_KEY = "connection.timeout"
READ_TIMEOUT_KEY = "read.timeout"
MAX_CONNECTIONS_KEY = "maxConnection"
PENDING_ACQUIRE_TIMEOUT_KEY = "pendingAcquireTimeout"
IDLE_TIMEOUT_KEY = "idle.timeout"
EVICTION_INTERVAL_KEY = "eviction.interval"

# Prefix used by deployments that namespace the keys, e.g. "webclient.read.timeout"
DEFAULT_KEY_PREFIX = "webclient."

DEFAULT_CONNECT_TIMEOUT_MS = 5_000
DEFAULT_READ_TIMEOUT_MS = 15_000
DEFAULT_MAX_CONNECTIONS = 100
# Slightly above the read timeout so a waiting caller outlives one slow call
DEFAULT_PENDING_ACQUIRE_TIMEOUT_MS = 16_000
DEFAULT_IDLE_TIMEOUT_MS = 150_000
DEFAULT_EVICTION_INTERVAL_MS = 30_000

# field name -> (configuration key, default)
CONFIG_KEYS: dict[str, tuple[str, int]] = {
    "connect_timeout_ms": (CONNECT_TIMEOUT_KEY, DEFAULT_CONNECT_TIMEOUT_MS),
    "read_timeout_ms": (READ_TIMEOUT_KEY, DEFAULT_READ_TIMEOUT_MS),
    "max_connections": (MAX_CONNECTIONS_KEY, DEFAULT_MAX_CONNECTIONS),
    "pending_acquire_timeout_ms": (
        PENDING_ACQUIRE_TIMEOUT_KEY,
        DEFAULT_PENDING_ACQUIRE_TIMEOUT_MS,
    ),
    "idle_timeout_ms": (IDLE_TIMEOUT_KEY, DEFAULT_IDLE_TIMEOUT_MS),
    "eviction_interval_ms": (EVICTION_INTERVAL_KEY, DEFAULT_EVICTION_INTERVAL_MS),
}


@dataclass(frozen=True)
class TransportConfig:
    """Immutable tuning parameters of the pooled transport.

    All durations are in milliseconds. The ``*_timeout`` and
    ``eviction_interval`` properties expose them in seconds, which is
    what httpx and asyncio expect.

    Args:
        connect_timeout_ms: Maximum time to establish a connection.
        read_timeout_ms: Maximum time to wait for response data.
        max_connections: Maximum number of live connections per target.
        pending_acquire_timeout_ms: Maximum time a caller waits for a
            pooled connection.
        idle_timeout_ms: Idle time after which a connection is evicted.
        eviction_interval_ms: Period of the background eviction sweep.

    Raises:
        ValueError: If any value is not a positive integer.

    Example:
        ```pycon
        >>> from sharedhttp.core.config import TransportConfig
        >>> config = TransportConfig()
        >>> config.max_connections
        100
        >>> config.read_timeout
        15.0
        >>> config.merge(max_connections=10).max_connections
        10

        ```
    """

    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    read_timeout_ms: int = DEFAULT_READ_TIMEOUT_MS
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    pending_acquire_timeout_ms: int = DEFAULT_PENDING_ACQUIRE_TIMEOUT_MS
    idle_timeout_ms: int = DEFAULT_IDLE_TIMEOUT_MS
    eviction_interval_ms: int = DEFAULT_EVICTION_INTERVAL_MS

    def __post_init__(self) -> None:
        for item in fields(self):
            validate_positive(item.name, getattr(self, item.name))

    @property
    def connect_timeout(self) -> float:
        return self.connect_timeout_ms / 1000

    @property
    def read_timeout(self) -> float:
        return self.read_timeout_ms / 1000

    @property
    def pending_acquire_timeout(self) -> float:
        return self.pending_acquire_timeout_ms / 1000

    @property
    def idle_timeout(self) -> float:
        return self.idle_timeout_ms / 1000

    @property
    def eviction_interval(self) -> float:
        return self.eviction_interval_ms / 1000

    def to_timeout(self) -> httpx.Timeout:
        """Return the per-request timeouts as an ``httpx.Timeout``.

        Writes share the read budget, and the pool budget mirrors the
        pending-acquire timeout.

        Returns:
            The timeout object to hand to ``httpx.AsyncClient``.
        """
        return httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.read_timeout,
            pool=self.pending_acquire_timeout,
        )

    def merge(self, **overrides: Any) -> TransportConfig:
        """Create a new config with the non-None overrides applied.

        Args:
            **overrides: Field values to override.

        Returns:
            A new ``TransportConfig``; the original is unchanged.
        """
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict[str, int]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


def resolve(source: Mapping[str, Any] | None = None, *, prefix: str = "") -> TransportConfig:
    r"""Build a ``TransportConfig`` from an external key-value source.

    Each of the six keys is looked up as ``prefix + key``; a missing key
    (or a ``None`` value) falls back to its default.

    Args:
        source: Any object exposing ``get(key, default)``, for example a
            dict, ``os.environ`` or a property store. ``None`` means all
            defaults.
        prefix: Optional namespace prepended to every key, for example
            ``DEFAULT_KEY_PREFIX``.

    Returns:
        The resolved configuration.

    Raises:
        ValueError: If a value is not an integer or is <= 0.

    Example:
        ```pycon
        >>> from sharedhttp.core.config import resolve
        >>> config = resolve({"read.timeout": "2500", "maxConnection": 8})
        >>> config.read_timeout_ms, config.max_connections, config.connect_timeout_ms
        (2500, 8, 5000)

        ```
    """
    values: dict[str, int] = {}
    for name, (key, default) in CONFIG_KEYS.items():
        full_key = prefix + key
        raw = source.get(full_key) if source is not None else None
        values[name] = default if raw is None else coerce_int(full_key, raw)
    return TransportConfig(**values)
