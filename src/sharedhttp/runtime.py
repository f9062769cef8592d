r"""Background event loop that runs the non-blocking I/O.

The blocking façade hands every call to an ``EventLoopRuntime``: the
coroutine runs on the runtime's loop thread while the calling thread
waits on a ``concurrent.futures.Future``.
"""

from __future__ import annotations

__all__ = ["EventLoopRuntime"]

import asyncio
import concurrent.futures
import logging
import threading
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from types import TracebackType
    from typing import Self

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventLoopRuntime:
    r"""An asyncio event loop running on a dedicated daemon thread.

    Args:
        name: The name of the loop thread.

    Example:
        ```pycon
        >>> import asyncio
        >>> from sharedhttp.runtime import EventLoopRuntime
        >>> async def answer():
        ...     await asyncio.sleep(0)
        ...     return 42
        ...
        >>> with EventLoopRuntime() as runtime:
        ...     runtime.run(answer())
        ...
        42

        ```
    """

    def __init__(self, name: str = "sharedhttp-io") -> None:
        self._name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            msg = "the event loop runtime is not started"
            raise RuntimeError(msg)
        return self._loop

    def start(self) -> None:
        """Start the loop thread; does nothing if already running."""
        with self._lock:
            if self.is_running:
                return
            loop = asyncio.new_event_loop()
            ready = threading.Event()
            thread = threading.Thread(
                target=self._run_loop, args=(loop, ready), name=self._name, daemon=True
            )
            thread.start()
            ready.wait()
            self._loop = loop
            self._thread = thread
            logger.debug(f"event loop runtime {self._name!r} started")

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        """Schedule a coroutine on the loop without waiting for it.

        Args:
            coro: The coroutine to run.

        Returns:
            A future resolved with the coroutine's outcome.
        """
        try:
            loop = self.loop
        except RuntimeError:
            coro.close()
            raise
        return asyncio.run_coroutine_threadsafe(coro, loop)

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """Run a coroutine on the loop and block until it completes.

        Args:
            coro: The coroutine to run.
            timeout: Optional maximum number of seconds to wait.

        Returns:
            The coroutine's result.

        Raises:
            RuntimeError: If called from the loop thread itself, or if
                the runtime is stopped before the coroutine completes.
        """
        if threading.current_thread() is self._thread:
            coro.close()
            msg = "cannot block on the event loop runtime from its own thread"
            raise RuntimeError(msg)
        future = self.submit(coro)
        try:
            return future.result(timeout)
        except concurrent.futures.CancelledError:
            msg = f"event loop runtime {self._name!r} stopped before the call completed"
            raise RuntimeError(msg) from None

    def stop(self) -> None:
        """Stop the loop and join its thread; does nothing if stopped.

        Tasks still running on the loop are cancelled and awaited first,
        so every caller waiting on one of their futures is released.
        """
        with self._lock:
            if self._loop is None or self._thread is None:
                return
            loop, thread = self._loop, self._thread
            if thread.is_alive():
                cancelled = asyncio.run_coroutine_threadsafe(self._cancel_pending(), loop).result()
                if cancelled:
                    logger.debug(
                        f"event loop runtime {self._name!r} cancelled {cancelled} pending task(s)"
                    )
            loop.call_soon_threadsafe(loop.stop)
            thread.join()
            loop.close()
            self._loop = None
            self._thread = None
            logger.debug(f"event loop runtime {self._name!r} stopped")

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop, ready: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())

    @staticmethod
    async def _cancel_pending() -> int:
        current = asyncio.current_task()
        pending = [task for task in asyncio.all_tasks() if task is not current]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        return len(pending)
