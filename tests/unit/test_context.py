r"""Unit tests for context capture and propagation."""

from __future__ import annotations

import asyncio
import threading

import pytest

from sharedhttp.context import (
    UNKNOWN,
    RequestContext,
    attach,
    bind_context,
    capture,
    clear,
    restore,
    set_context,
)

CONTEXT = RequestContext(session_id="S1", trace_id="T1", span_id="P1")


#############################
#     Tests for capture     #
#############################


def test_capture_without_ambient_context() -> None:
    """Test that every missing identifier becomes the sentinel."""
    assert capture() == RequestContext(UNKNOWN, UNKNOWN, UNKNOWN)


def test_capture_partial_context() -> None:
    """Test that only the missing identifiers become the sentinel."""
    set_context(session_id="S1")
    assert capture() == RequestContext(session_id="S1", trace_id=UNKNOWN, span_id=UNKNOWN)


@pytest.mark.parametrize("blank", ["", "   "])
def test_capture_blank_identifier_is_unknown(blank: str) -> None:
    """Test that blank identifiers are treated as missing."""
    set_context(session_id=blank, trace_id="T1", span_id=blank)
    assert capture() == RequestContext(session_id=UNKNOWN, trace_id="T1", span_id=UNKNOWN)


def test_request_context_as_dict() -> None:
    assert CONTEXT.as_dict() == {"session_id": "S1", "trace_id": "T1", "span_id": "P1"}


####################################
#     Tests for attach / clear     #
####################################


def test_attach_then_clear_restores_previous_values() -> None:
    """Test that clear undoes exactly one attach."""
    set_context(session_id="outer")
    token = attach(CONTEXT)
    assert capture() == CONTEXT
    clear(token)
    assert capture().session_id == "outer"
    assert capture().trace_id == UNKNOWN


def test_clear_without_token_unsets_everything() -> None:
    attach(CONTEXT)
    clear()
    assert capture() == RequestContext()


def test_restore_is_scoped() -> None:
    """Test that restore only applies inside its block."""
    with restore(CONTEXT) as context:
        assert context is CONTEXT
        assert capture() == CONTEXT
    assert capture() == RequestContext()


def test_restore_clears_on_exception() -> None:
    with pytest.raises(ValueError, match=r"boom"), restore(CONTEXT):
        raise ValueError("boom")
    assert capture() == RequestContext()


def test_bind_context() -> None:
    with bind_context(session_id="S9", trace_id="T9") as context:
        assert context == RequestContext(session_id="S9", trace_id="T9", span_id=UNKNOWN)
        assert capture() == context
    assert capture() == RequestContext()


####################################################
#     Tests for propagation across the boundary    #
####################################################


def test_context_is_not_visible_on_another_thread() -> None:
    """Test that ambient identifiers are per thread, so they must be
    captured and passed explicitly."""
    seen: list[RequestContext] = []
    with bind_context(session_id="S1", trace_id="T1", span_id="P1"):
        thread = threading.Thread(target=lambda: seen.append(capture()))
        thread.start()
        thread.join()
    assert seen == [RequestContext()]


def test_attached_context_does_not_leak_between_tasks() -> None:
    """Test that a context attached inside one task is invisible to the
    next task run on the same loop."""

    async def first() -> RequestContext:
        attach(CONTEXT)
        await asyncio.sleep(0)
        return capture()

    async def second() -> RequestContext:
        return capture()

    async def main() -> tuple[RequestContext, RequestContext]:
        loop = asyncio.get_running_loop()
        inside = await loop.create_task(first())
        after = await loop.create_task(second())
        return inside, after

    inside, after = asyncio.run(main())
    assert inside == CONTEXT
    assert after == RequestContext()
