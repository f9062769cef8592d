r"""Structured logging utilities for machine-readable log output.

Every log event emitted by the client carries its fields through the
``extra`` mapping of the standard logging API, under stable keys. The
``StructuredFormatter`` renders records as JSON and adds the session,
trace and span identifiers active when the record was created.

Example:
    Enable structured logging for sharedhttp:

    ```python
    import logging
    from sharedhttp.utils.structured_logging import StructuredFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    logger = logging.getLogger("sharedhttp")
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    ```
"""

from __future__ import annotations

__all__ = [
    "ERROR_EVENT",
    "LATENCY_EVENT",
    "REQUEST_EVENT",
    "RESPONSE_EVENT",
    "TRANSPORT_REQUEST_EVENT",
    "TRANSPORT_RESPONSE_EVENT",
    "ContextFilter",
    "StructuredFormatter",
    "log_structured",
]

import json
import logging
import time
from typing import Any

from sharedhttp.context import SESSION_KEY, SPAN_KEY, TRACE_KEY, capture

REQUEST_EVENT = "http.request"
RESPONSE_EVENT = "http.response"
ERROR_EVENT = "http.error"
LATENCY_EVENT = "http.latency"
TRANSPORT_REQUEST_EVENT = "http.transport.request"
TRANSPORT_RESPONSE_EVENT = "http.transport.response"

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "msecs",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "sinfo",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "taskName",
    }
)


class ContextFilter(logging.Filter):
    """Stamp each record with the identifiers of the active context.

    Identifiers already present on the record (passed explicitly through
    ``extra``) are kept. Attach the filter to a handler so that the
    stamping happens on the thread that created the record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in capture().as_dict().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Standard fields in the JSON output:
        - timestamp: ISO 8601 timestamp
        - level: Log level name
        - logger: Logger name
        - message: Log message
        - session_id, trace_id, span_id: correlation identifiers
        - module, function, line, thread, process

    Any additional fields added via the ``extra`` parameter in logging
    calls are included as well.

    Example:
        ```pycon
        >>> import logging
        >>> from io import StringIO
        >>> from sharedhttp.utils.structured_logging import StructuredFormatter
        >>> stream = StringIO()
        >>> handler = logging.StreamHandler(stream)
        >>> handler.setFormatter(StructuredFormatter())
        >>> logger = logging.getLogger("test_logger")
        >>> logger.addHandler(handler)
        >>> logger.setLevel(logging.INFO)
        >>> logger.info("Test message", extra={"endpoint": "/orders"})
        >>> output = stream.getvalue()
        >>> '"session_id": "unknown"' in output
        True

        ```
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
            "process": record.process,
        }

        # Identifiers passed explicitly win over the ambient ones
        ambient = capture().as_dict()
        for key in (SESSION_KEY, TRACE_KEY, SPAN_KEY):
            log_data[key] = getattr(record, key, ambient[key])

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        """Format timestamp as ISO 8601 with millisecond precision."""
        return (
            time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            + f".{int(record.msecs):03d}Z"
        )


def log_structured(
    logger: logging.Logger,
    level: int,
    message: str,
    **extra: Any,
) -> None:
    """Log a message with structured data.

    The session, trace and span identifiers of the active context are
    added to the fields unless given explicitly.

    Args:
        logger: Logger to use.
        level: Log level (e.g., logging.INFO).
        message: Log message, usually one of the ``*_EVENT`` names.
        **extra: Additional structured fields to include in the log.

    Example:
        ```pycon
        >>> import logging
        >>> from sharedhttp.utils.structured_logging import LATENCY_EVENT, log_structured
        >>> log_structured(
        ...     logging.getLogger("test_structured"),
        ...     logging.INFO,
        ...     LATENCY_EVENT,
        ...     endpoint="/orders",
        ...     elapsed_ms=12.5,
        ... )

        ```
    """
    logger.log(level, message, extra={**capture().as_dict(), **extra})
