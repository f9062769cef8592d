r"""Parameter validation utilities for transport tuning values."""

from __future__ import annotations

__all__ = ["coerce_int", "validate_positive"]

from typing import Any


def validate_positive(name: str, value: int) -> None:
    """Validate that a tuning value is a strictly positive integer.

    Args:
        name: The name of the parameter, used in the error message.
        value: The value to check.

    Raises:
        ValueError: If ``value`` is not an int or is <= 0.

    Example:
        ```pycon
        >>> from sharedhttp.core.validation import validate_positive
        >>> validate_positive("max_connections", 10)
        >>> validate_positive("max_connections", 0)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        ValueError: max_connections must be > 0, got 0

        ```
    """
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an int, got {type(value).__name__}"
        raise ValueError(msg)
    if value <= 0:
        msg = f"{name} must be > 0, got {value}"
        raise ValueError(msg)


def coerce_int(key: str, value: Any) -> int:
    """Convert a raw configuration value into an int.

    Property stores usually deliver strings, so numeric strings are
    accepted as well as ints.

    Args:
        key: The configuration key, used in the error message.
        value: The raw value.

    Returns:
        The value as an int.

    Raises:
        ValueError: If the value cannot be interpreted as an integer.

    Example:
        ```pycon
        >>> from sharedhttp.core.validation import coerce_int
        >>> coerce_int("read.timeout", "2500")
        2500
        >>> coerce_int("read.timeout", 2500)
        2500

        ```
    """
    if isinstance(value, bool):
        msg = f"configuration key {key!r} must be an integer, got {value!r}"
        raise ValueError(msg)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        msg = f"configuration key {key!r} must be an integer, got {value!r}"
        raise ValueError(msg) from None
