r"""Recovery of typed payloads from error responses.

Some downstream services answer with a non-2xx status and a structured
body that doubles as the normal response document. ``ErrorRecovery``
always logs the error first, then tries to decode that body into the
type the caller declared. A decodable body turns the failure into a
``RecoveredFromError`` result; anything else is handed back unchanged
as a ``Failure``.
"""

from __future__ import annotations

__all__ = ["ErrorRecovery"]

import logging
from typing import Any

import pydantic

from sharedhttp.decoding import decode_body, decode_list
from sharedhttp.exceptions import DeserializationError
from sharedhttp.result import ErrorEnvelope, ExecutionResult, Failure, RecoveredFromError
from sharedhttp.utils.structured_logging import ERROR_EVENT, log_structured

logger: logging.Logger = logging.getLogger(__name__)


class ErrorRecovery:
    r"""Decide what a failed call returns to its caller.

    Example:
        ```pycon
        >>> from sharedhttp.exceptions import HttpErrorResponse
        >>> from sharedhttp.recovery import ErrorRecovery
        >>> from sharedhttp.result import ErrorEnvelope
        >>> error = HttpErrorResponse(
        ...     method="POST",
        ...     url="https://example.com/orders",
        ...     message="409 Conflict",
        ...     status_code=409,
        ...     body='{"code": "DUP", "id": 42}',
        ... )
        >>> result = ErrorRecovery().recover(ErrorEnvelope.from_error(error), dict)
        >>> result.recovered, result.value
        (True, {'code': 'DUP', 'id': 42})

        ```
    """

    def recover(
        self,
        envelope: ErrorEnvelope,
        expected_type: Any,
        *,
        many: bool = False,
        content_type: str | None = None,
    ) -> ExecutionResult[Any]:
        """Log the error, then try to decode its body.

        Args:
            envelope: The captured error.
            expected_type: The declared response type, or the element
                type when ``many`` is true.
            many: Whether the call expects a list of ``expected_type``.
            content_type: The ``Content-Type`` of the error response.

        Returns:
            ``RecoveredFromError`` when the body decodes into the
            expected shape, ``Failure`` carrying the original error
            otherwise.
        """
        self.log_error(envelope)
        if not envelope.has_body or isinstance(envelope.cause, DeserializationError):
            return Failure(envelope)
        try:
            if many:
                value = decode_list(envelope.raw_body, expected_type, content_type)
            else:
                value = decode_body(envelope.raw_body, expected_type)
        except (pydantic.ValidationError, ValueError) as exc:
            logger.debug(
                f"error body of {envelope.method} {envelope.url} does not decode "
                f"into the expected type: {exc}"
            )
            return Failure(envelope)
        logger.debug(f"recovered a typed payload from the error body of {envelope.url}")
        return RecoveredFromError(value, envelope)

    def log_error(self, envelope: ErrorEnvelope) -> None:
        cause = envelope.cause.cause if envelope.cause.cause is not None else envelope.cause
        log_structured(
            logger,
            logging.INFO,
            ERROR_EVENT,
            status_code=envelope.status_code,
            error_message=envelope.message,
            body=envelope.raw_body,
            cause=repr(cause),
            method=envelope.method,
            url=envelope.url,
        )
