r"""Helpers for error translation and structured logging."""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "error_from_response",
    "log_structured",
    "translate_transport_error",
]

from sharedhttp.utils.exceptions import error_from_response, translate_transport_error
from sharedhttp.utils.structured_logging import StructuredFormatter, log_structured
