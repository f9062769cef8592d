r"""Propagation of session/trace/span identifiers across the I/O
boundary.

The identifiers live in context variables. A call captures them on the
thread that issues it, and the captured ``RequestContext`` value is
handed explicitly to the coroutine that runs on the I/O event loop. The
coroutine attaches it inside its own task, so every log record for that
call carries the same identifiers regardless of which worker completes
it, and nothing survives once the task is done.

Example:
    ```pycon
    >>> from sharedhttp.context import bind_context, capture
    >>> with bind_context(session_id="S1", trace_id="T1", span_id="P1"):
    ...     capture()
    ...
    RequestContext(session_id='S1', trace_id='T1', span_id='P1')
    >>> capture()
    RequestContext(session_id='unknown', trace_id='unknown', span_id='unknown')

    ```
"""

from __future__ import annotations

__all__ = [
    "SESSION_KEY",
    "SPAN_KEY",
    "TRACE_KEY",
    "UNKNOWN",
    "RequestContext",
    "attach",
    "bind_context",
    "capture",
    "clear",
    "restore",
    "set_context",
]

import contextlib
import contextvars
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

UNKNOWN = "unknown"

SESSION_KEY = "session_id"
TRACE_KEY = "trace_id"
SPAN_KEY = "span_id"

_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "sharedhttp_session_id", default=None
)
_trace_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "sharedhttp_trace_id", default=None
)
_span_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "sharedhttp_span_id", default=None
)

_VARS = (_session_id, _trace_id, _span_id)


def _or_unknown(value: str | None) -> str:
    if value is None or not value.strip():
        return UNKNOWN
    return value


@dataclass(frozen=True)
class RequestContext:
    """Correlation identifiers of one call.

    Missing identifiers are stored as the ``"unknown"`` sentinel, never
    as ``None``.
    """

    session_id: str = UNKNOWN
    trace_id: str = UNKNOWN
    span_id: str = UNKNOWN

    def as_dict(self) -> dict[str, str]:
        return {
            SESSION_KEY: self.session_id,
            TRACE_KEY: self.trace_id,
            SPAN_KEY: self.span_id,
        }


Token = tuple[contextvars.Token, contextvars.Token, contextvars.Token]


def capture() -> RequestContext:
    """Read the ambient identifiers of the current execution context.

    Returns:
        A ``RequestContext`` with ``"unknown"`` for every identifier that
        is unset or blank.
    """
    return RequestContext(
        session_id=_or_unknown(_session_id.get()),
        trace_id=_or_unknown(_trace_id.get()),
        span_id=_or_unknown(_span_id.get()),
    )



def set_context(
    session_id: str | None = None,
    trace_id: str | None = None,
    span_id: str | None = None,
) -> Token:
    """Set the ambient identifiers of the current execution context.

    Args:
        session_id: The session identifier.
        trace_id: The trace identifier.
        span_id: The span identifier.

    Returns:
        A token to pass to ``clear`` to restore the previous values.
    """
    return (
        _session_id.set(session_id),
        _trace_id.set(trace_id),
        _span_id.set(span_id),
    )


def attach(context: RequestContext) -> Token:
    """Bind a captured context to the current task.

    Call it from inside the coroutine that handles the request: asyncio
    runs each task in its own copy of the context, so the binding is
    visible to every callback of that task (including httpx event hooks)
    and to nothing else.

    Args:
        context: The context captured at call entry.

    Returns:
        A token to pass to ``clear`` when the call completes.
    """
    return set_context(context.session_id, context.trace_id, context.span_id)


def clear(token: Token | None = None) -> None:
    """Undo an ``attach``/``set_context``, or unset everything.

    Args:
        token: The token returned by ``attach`` or ``set_context``. If
            ``None``, all three identifiers are reset to unset.
    """
    if token is None:
        for var in _VARS:
            var.set(None)
        return
    for var, var_token in zip(_VARS, token, strict=True):
        var.reset(var_token)


@contextlib.contextmanager
def restore(context: RequestContext) -> Generator[RequestContext, None, None]:
    """Temporarily make ``context`` the ambient context.

    Args:
        context: The context to observe inside the block.

    Yields:
        The same context.
    """
    token = attach(context)
    try:
        yield context
    finally:
        clear(token)


@contextlib.contextmanager
def bind_context(
    session_id: str | None = None,
    trace_id: str | None = None,
    span_id: str | None = None,
) -> Generator[RequestContext, None, None]:
    r"""Set the ambient identifiers for the duration of a block.

    This is how callers make their identifiers visible to the client.

    Example:
        ```pycon
        >>> from sharedhttp.context import bind_context
        >>> with bind_context(session_id="S1") as context:
        ...     context.trace_id
        ...
        'unknown'

        ```
    """
    token = set_context(session_id, trace_id, span_id)
    try:
        yield capture()
    finally:
        clear(token)
