r"""Core configuration shared by the pool, the transport and the
clients."""

from __future__ import annotations

__all__ = [
    "DEFAULT_KEY_PREFIX",
    "TransportConfig",
    "coerce_int",
    "resolve",
    "validate_positive",
]

from sharedhttp.core.config import DEFAULT_KEY_PREFIX, TransportConfig, resolve
from sharedhttp.core.validation import coerce_int, validate_positive
