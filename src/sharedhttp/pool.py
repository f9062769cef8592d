r"""Bounded pool of reusable connections to downstream targets.

A target is the origin (scheme, host and port) of a request URL. For
each target the pool keeps at most ``max_connections`` live
connections, created lazily and reused most-recently-released first.
Callers that find every connection busy wait up to
``pending_acquire_timeout`` before failing with ``PoolExhaustedError``.

A background job, started with the pool and cancelled on shutdown,
closes connections left idle for longer than ``idle_timeout`` every
``eviction_interval``. The sweep is best-effort: a connection closed by
the peer in between is detected on the next acquire (or by httpcore on
the next request) and replaced without surfacing an error.

Example:
    ```pycon
    >>> import asyncio
    >>> from sharedhttp.pool import ConnectionPool
    >>> async def main():
    ...     pool = ConnectionPool()
    ...     await pool.start()
    ...     connection = await pool.acquire("https://api.example.com/orders")
    ...     await pool.release(connection)
    ...     stats = pool.stats()
    ...     await pool.shutdown()
    ...     return stats.live, stats.idle
    ...
    >>> asyncio.run(main())
    (1, 1)

    ```
"""

from __future__ import annotations

__all__ = ["Connection", "ConnectionPool", "PoolStats", "target_of"]

import asyncio
import contextlib
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from sharedhttp.core.config import TransportConfig
from sharedhttp.exceptions import PoolExhaustedError
from sharedhttp.transport import build_async_client

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sharedhttp.transport import VerifyTypes

logger: logging.Logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def target_of(url: str | httpx.URL) -> str:
    """Return the pool key of a URL: its origin.

    Args:
        url: A full URL, or an already-computed target name.

    Returns:
        ``scheme://host:port`` for URLs, the input unchanged otherwise.

    Example:
        ```pycon
        >>> from sharedhttp.pool import target_of
        >>> target_of("https://api.example.com/orders?id=1")
        'https://api.example.com:443'

        ```
    """
    parsed = httpx.URL(url)
    if not parsed.host:
        return str(url)
    port = parsed.port or _DEFAULT_PORTS.get(parsed.scheme)
    return f"{parsed.scheme}://{parsed.host}:{port}"


class Connection:
    """One reusable connection to a target.

    Attributes:
        target: The origin this connection serves.
        client: The single-socket ``httpx.AsyncClient`` doing the I/O.
        created_at: Clock value at creation.
        last_used: Clock value of the last acquire or release.
        in_use: Whether the connection is currently leased.
    """

    def __init__(self, target: str, client: httpx.AsyncClient, *, created_at: float) -> None:
        self.target = target
        self.client = client
        self.created_at = created_at
        self.last_used = created_at
        self.in_use = False

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(target={self.target!r}, "
            f"in_use={self.in_use}, closed={self.is_closed})"
        )

    @property
    def is_closed(self) -> bool:
        return self.client.is_closed

    def idle_for(self, now: float) -> float:
        return 0.0 if self.in_use else now - self.last_used

    async def aclose(self) -> None:
        if not self.client.is_closed:
            await self.client.aclose()


@dataclass
class _Slot:
    condition: asyncio.Condition = field(default_factory=asyncio.Condition)
    idle: deque[Connection] = field(default_factory=deque)
    live: int = 0
    waiting: int = 0


@dataclass(frozen=True)
class PoolStats:
    """Snapshot of the pool occupancy, summed over all targets."""

    name: str
    targets: int
    live: int
    idle: int
    in_use: int
    waiting: int


class ConnectionPool:
    r"""Bounded, lazily-filled pool of connections per target.

    All mutation (borrow, return, evict) happens on the event loop under
    the per-target condition lock, so concurrent callers never observe
    more than ``max_connections`` live connections to one target.

    Args:
        config: The transport configuration. Defaults to
            ``TransportConfig()``.
        name: Pool name used in logs and error messages.
        verify: TLS trust policy handed to every connection.
        transport: Optional transport replacing the network, for tests.
        clock: Monotonic clock in seconds; injectable for tests.
    """

    def __init__(
        self,
        config: TransportConfig | None = None,
        *,
        name: str = "sharedhttp",
        verify: VerifyTypes = True,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or TransportConfig()
        self._name = name
        self._verify = verify
        self._transport = transport
        self._clock = clock
        self._slots: dict[str, _Slot] = {}
        self._eviction_task: asyncio.Task[None] | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(name={self._name!r}, config={self._config})"

    @property
    def config(self) -> TransportConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_started(self) -> bool:
        return self._eviction_task is not None and not self._eviction_task.done()

    async def start(self) -> None:
        """Start the background eviction job.

        Calling it on a started pool does nothing.

        Raises:
            RuntimeError: If the pool has been shut down.
        """
        self._ensure_open()
        if self._eviction_task is None:
            self._eviction_task = asyncio.get_running_loop().create_task(
                self._evict_periodically(), name=f"{self._name}-eviction"
            )
            logger.debug(
                f"connection pool {self._name!r} started "
                f"(eviction every {self._config.eviction_interval_ms} ms)"
            )

    async def acquire(self, target: str, *, method: str = "") -> Connection:
        """Borrow a connection to ``target``.

        Args:
            target: A URL or a target name; URLs are keyed by origin.
            method: The HTTP method of the call, used in error messages.

        Returns:
            A leased connection, to hand back with ``release``.

        Raises:
            PoolExhaustedError: If no connection became available within
                ``pending_acquire_timeout``.
            RuntimeError: If the pool has been shut down.
        """
        self._ensure_open()
        if self._eviction_task is None:
            await self.start()
        key = target_of(target)
        slot = self._slots.get(key)
        if slot is None:
            slot = self._slots[key] = _Slot()
        slot.waiting += 1
        try:
            return await asyncio.wait_for(
                self._checkout(key, slot), timeout=self._config.pending_acquire_timeout
            )
        except asyncio.TimeoutError:
            msg = (
                f"connection pool {self._name!r} has no free connection to {key} after "
                f"{self._config.pending_acquire_timeout_ms} ms "
                f"({self._config.max_connections} in use)"
            )
            logger.debug(msg)
            raise PoolExhaustedError(method=method, url=target, message=msg) from None
        finally:
            slot.waiting -= 1

    async def release(self, connection: Connection) -> None:
        """Return a leased connection to the pool.

        The connection is closed instead when it is already closed or
        when the pool has been shut down.

        Args:
            connection: The connection returned by ``acquire``.
        """
        if self._closed or connection.is_closed:
            await self.discard(connection)
            return
        slot = self._slots[connection.target]
        async with slot.condition:
            connection.in_use = False
            connection.last_used = self._clock()
            slot.idle.append(connection)
            slot.condition.notify()

    async def discard(self, connection: Connection) -> None:
        """Close a leased connection and free its place in the pool.

        Args:
            connection: The connection returned by ``acquire``.
        """
        slot = self._slots[connection.target]
        async with slot.condition:
            connection.in_use = False
            slot.live -= 1
            slot.condition.notify()
        await connection.aclose()

    @contextlib.asynccontextmanager
    async def connection(self, target: str, *, method: str = "") -> AsyncIterator[Connection]:
        """Lease a connection for the duration of an ``async with``
        block."""
        leased = await self.acquire(target, method=method)
        try:
            yield leased
        finally:
            await self.release(leased)

    async def evict_idle(self) -> int:
        """Close every idle connection unused for longer than
        ``idle_timeout``.

        Returns:
            The number of connections closed.
        """
        now = self._clock()
        expired: list[Connection] = []
        for slot in self._slots.values():
            async with slot.condition:
                keep: deque[Connection] = deque()
                for conn in slot.idle:
                    if conn.is_closed or conn.idle_for(now) > self._config.idle_timeout:
                        expired.append(conn)
                    else:
                        keep.append(conn)
                evicted = len(slot.idle) - len(keep)
                if evicted:
                    slot.idle = keep
                    slot.live -= evicted
                    slot.condition.notify(evicted)
        for conn in expired:
            await conn.aclose()
        if expired:
            logger.debug(f"connection pool {self._name!r} evicted {len(expired)} idle connection(s)")
        return len(expired)

    async def shutdown(self) -> None:
        """Stop the eviction job and close every idle connection.

        Leased connections are closed when they are released. Calling it
        twice does nothing.
        """
        if self._closed:
            return
        self._closed = True
        if self._eviction_task is not None:
            self._eviction_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._eviction_task
        idle: list[Connection] = []
        for slot in self._slots.values():
            async with slot.condition:
                idle.extend(slot.idle)
                slot.live -= len(slot.idle)
                slot.idle.clear()
                slot.condition.notify_all()
        for conn in idle:
            await conn.aclose()
        logger.debug(f"connection pool {self._name!r} shut down")

    def stats(self) -> PoolStats:
        slots = list(self._slots.values())
        live = sum(slot.live for slot in slots)
        idle = sum(len(slot.idle) for slot in slots)
        return PoolStats(
            name=self._name,
            targets=len(slots),
            live=live,
            idle=idle,
            in_use=live - idle,
            waiting=sum(slot.waiting for slot in slots),
        )

    def _ensure_open(self) -> None:
        if self._closed:
            msg = f"connection pool {self._name!r} is shut down"
            raise RuntimeError(msg)

    async def _checkout(self, key: str, slot: _Slot) -> Connection:
        async with slot.condition:
            while True:
                self._ensure_open()
                while slot.idle:
                    conn = slot.idle.pop()
                    if conn.is_closed:
                        # Closed underneath us; forget it and try the next one
                        slot.live -= 1
                        continue
                    return self._lease(conn)
                if slot.live < self._config.max_connections:
                    slot.live += 1
                    try:
                        client = build_async_client(
                            self._config, verify=self._verify, transport=self._transport
                        )
                    except BaseException:
                        slot.live -= 1
                        raise
                    logger.debug(f"connection pool {self._name!r} opened connection to {key}")
                    return self._lease(Connection(key, client, created_at=self._clock()))
                try:
                    await slot.condition.wait()
                except asyncio.CancelledError:
                    # Pass a notification we may have consumed on to the next waiter
                    slot.condition.notify()
                    raise

    def _lease(self, conn: Connection) -> Connection:
        conn.in_use = True
        conn.last_used = self._clock()
        return conn

    async def _evict_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._config.eviction_interval)
            try:
                await self.evict_idle()
            except Exception:
                logger.exception(f"idle eviction failed in connection pool {self._name!r}")
