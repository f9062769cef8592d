r"""Decoding of response bodies into caller-declared types.

Decoding is delegated to pydantic ``TypeAdapter`` so that any type
pydantic understands can be declared: models, dataclasses, TypedDicts
and builtin containers. ``str`` and ``bytes`` bypass JSON parsing.
"""

from __future__ import annotations

__all__ = ["NDJSON_CONTENT_TYPE", "decode_body", "decode_list"]

import functools
from typing import Any

import pydantic

NDJSON_CONTENT_TYPE = "application/x-ndjson"


@functools.lru_cache(maxsize=256)
def _adapter(tp: Any) -> pydantic.TypeAdapter:
    return pydantic.TypeAdapter(tp)


def _is_blank(body: bytes | str) -> bool:
    return not body.strip()


def _is_ndjson(content_type: str | None) -> bool:
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == NDJSON_CONTENT_TYPE


def decode_body(body: bytes | str, response_type: Any) -> Any:
    r"""Decode a single-object body.

    Args:
        body: The raw body.
        response_type: The declared type. ``str`` returns the text and
            ``bytes`` the raw content; anything else is validated from
            JSON.

    Returns:
        The decoded value, or ``None`` when the body is blank.

    Raises:
        pydantic.ValidationError: If the body does not match the type.

    Example:
        ```pycon
        >>> from sharedhttp.decoding import decode_body
        >>> decode_body(b'{"code": "DUP", "id": 42}', dict[str, object])
        {'code': 'DUP', 'id': 42}
        >>> decode_body(b"", dict[str, object]) is None
        True

        ```
    """
    if response_type is bytes:
        return body.encode() if isinstance(body, str) else body
    if response_type is str:
        return body.decode() if isinstance(body, bytes) else body
    if _is_blank(body):
        return None
    return _adapter(response_type).validate_json(body)


def decode_list(body: bytes | str, element_type: Any, content_type: str | None = None) -> list[Any]:
    r"""Decode a sequence body into a complete list.

    The body is either a JSON array or, for ``application/x-ndjson``,
    one JSON document per line. Either every element decodes or the
    whole call fails; a partial list is never returned.

    Args:
        body: The raw body.
        element_type: The declared type of each element.
        content_type: The ``Content-Type`` header of the response.

    Returns:
        The decoded elements in body order. A blank body is an empty
        list.

    Raises:
        pydantic.ValidationError: If any element does not match the type.

    Example:
        ```pycon
        >>> from sharedhttp.decoding import decode_list
        >>> decode_list(b"[1, 2, 3]", int)
        [1, 2, 3]
        >>> decode_list(b'{"a": 1}\n{"a": 2}\n', dict, "application/x-ndjson")
        [{'a': 1}, {'a': 2}]

        ```
    """
    if _is_blank(body):
        return []
    if _is_ndjson(content_type):
        text = body.decode() if isinstance(body, bytes) else body
        adapter = _adapter(element_type)
        return [adapter.validate_json(line) for line in text.splitlines() if line.strip()]
    return _adapter(list[element_type]).validate_json(body)
