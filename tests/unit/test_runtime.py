r"""Unit tests for the background event loop runtime."""

from __future__ import annotations

import asyncio
import threading

import pytest

from sharedhttp.runtime import EventLoopRuntime


async def current_thread_name() -> str:
    await asyncio.sleep(0)
    return threading.current_thread().name


def test_runtime_run_on_loop_thread() -> None:
    with EventLoopRuntime(name="test-io") as runtime:
        assert runtime.is_running
        assert runtime.run(current_thread_name()) == "test-io"
    assert not runtime.is_running


def test_runtime_start_is_idempotent() -> None:
    runtime = EventLoopRuntime()
    runtime.start()
    loop = runtime.loop
    runtime.start()
    assert runtime.loop is loop
    runtime.stop()


def test_runtime_stop_twice() -> None:
    runtime = EventLoopRuntime()
    runtime.start()
    runtime.stop()
    runtime.stop()
    assert not runtime.is_running


def test_runtime_submit_returns_future() -> None:
    async def add(a: int, b: int) -> int:
        await asyncio.sleep(0.01)
        return a + b

    with EventLoopRuntime() as runtime:
        future = runtime.submit(add(1, 2))
        assert future.result(timeout=5) == 3


def test_runtime_run_propagates_exception() -> None:
    async def fail() -> None:
        msg = "downstream"
        raise ValueError(msg)

    with EventLoopRuntime() as runtime, pytest.raises(ValueError, match=r"downstream"):
        runtime.run(fail())


def test_runtime_not_started() -> None:
    runtime = EventLoopRuntime()
    with pytest.raises(RuntimeError, match=r"not started"):
        runtime.loop  # noqa: B018


def test_runtime_submit_not_started_closes_coroutine() -> None:
    runtime = EventLoopRuntime()
    coro = current_thread_name()
    with pytest.raises(RuntimeError, match=r"not started"):
        runtime.submit(coro)
    assert coro.cr_frame is None


def test_runtime_run_from_loop_thread_raises() -> None:
    with EventLoopRuntime() as runtime:

        async def nested() -> None:
            runtime.run(current_thread_name())

        with pytest.raises(RuntimeError, match=r"from its own thread"):
            runtime.run(nested())


def test_runtime_restart_after_stop() -> None:
    runtime = EventLoopRuntime()
    runtime.start()
    runtime.stop()
    runtime.start()
    assert runtime.run(current_thread_name()) == "sharedhttp-io"
    runtime.stop()


def test_runtime_stop_releases_blocked_callers() -> None:
    runtime = EventLoopRuntime()
    runtime.start()
    started = threading.Event()
    errors: list[BaseException] = []

    async def forever() -> None:
        started.set()
        await asyncio.sleep(3600)

    def caller() -> None:
        try:
            runtime.run(forever())
        except RuntimeError as exc:
            errors.append(exc)

    thread = threading.Thread(target=caller)
    thread.start()
    assert started.wait(timeout=5)
    pending = runtime.submit(forever())
    runtime.stop()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert len(errors) == 1
    assert "stopped before the call completed" in str(errors[0])
    assert pending.cancelled()
