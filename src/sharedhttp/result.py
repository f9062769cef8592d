r"""Tagged outcome of an HTTP call.

A blocking call never answers with a bare value: it returns one of
``Success``, ``RecoveredFromError`` or ``Failure``. A value decoded from
an error body is still usable, but it is tagged so that callers (and
tests) can tell it apart from a genuine 2xx answer.

Example:
    ```pycon
    >>> from sharedhttp.result import Success
    >>> result = Success({"id": 42})
    >>> result.is_success, result.unwrap()
    (True, {'id': 42})

    ```
"""

from __future__ import annotations

__all__ = ["ErrorEnvelope", "ExecutionResult", "Failure", "RecoveredFromError", "Success"]

from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, NoReturn, TypeVar, Union

if TYPE_CHECKING:
    from sharedhttp.exceptions import HttpRequestError

T = TypeVar("T")


@dataclass(frozen=True)
class ErrorEnvelope:
    """Everything known about a failed call.

    Attributes:
        status_code: The HTTP status, or ``None`` for transport failures.
        message: The error message.
        raw_body: The response body as text, empty when there was none.
        cause: The original exception; re-raised unchanged by
            ``Failure.unwrap``.
        method: The HTTP method of the call.
        url: The URL of the call.
    """

    status_code: int | None
    message: str
    raw_body: str
    cause: HttpRequestError
    method: str = ""
    url: str = ""

    @property
    def has_body(self) -> bool:
        return bool(self.raw_body.strip())

    @classmethod
    def from_error(cls, error: HttpRequestError) -> ErrorEnvelope:
        """Capture the envelope of a taxonomy error.

        Args:
            error: The error raised while executing the call.

        Returns:
            The envelope, with ``error`` as its cause.
        """
        return cls(
            status_code=error.status_code,
            message=error.message,
            raw_body=error.body or "",
            cause=error,
            method=error.method,
            url=error.url,
        )


@dataclass(frozen=True)
class Success(Generic[T]):
    """The downstream answered with a 2xx status and the body decoded."""

    value: T

    @property
    def is_success(self) -> bool:
        return True

    @property
    def recovered(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class RecoveredFromError(Generic[T]):
    """The call failed but its error body decoded into the declared type.

    Attributes:
        value: The value decoded from the error body.
        envelope: The error that was recovered from.
    """

    value: T
    envelope: ErrorEnvelope

    @property
    def is_success(self) -> bool:
        return True

    @property
    def recovered(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """The call failed and nothing could be recovered."""

    envelope: ErrorEnvelope

    @property
    def is_success(self) -> bool:
        return False

    @property
    def recovered(self) -> bool:
        return False

    @property
    def value(self) -> None:
        return None

    @property
    def error(self) -> HttpRequestError:
        return self.envelope.cause

    def unwrap(self) -> NoReturn:
        """Re-raise the original error, unchanged.

        Raises:
            HttpRequestError: Always; the error stored in the envelope.
        """
        raise self.envelope.cause


ExecutionResult = Union[Success[T], RecoveredFromError[T], Failure]
