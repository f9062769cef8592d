r"""Unit tests for the tagged execution results."""

from __future__ import annotations

import pytest

from sharedhttp.exceptions import HttpErrorResponse, UnknownTransportError
from sharedhttp.result import ErrorEnvelope, Failure, RecoveredFromError, Success

URL = "https://orders.internal/orders"


def make_error(body: str = "") -> HttpErrorResponse:
    return HttpErrorResponse(
        method="POST",
        url=URL,
        message="409 Conflict from POST " + URL,
        status_code=409,
        body=body,
    )


###################################
#     Tests for ErrorEnvelope     #
###################################


def test_error_envelope_from_http_error() -> None:
    error = make_error('{"code": "DUP"}')
    envelope = ErrorEnvelope.from_error(error)
    assert envelope.status_code == 409
    assert envelope.message == "409 Conflict from POST " + URL
    assert envelope.raw_body == '{"code": "DUP"}'
    assert envelope.cause is error
    assert envelope.method == "POST"
    assert envelope.url == URL
    assert envelope.has_body


def test_error_envelope_from_transport_error() -> None:
    cause = ConnectionResetError("reset")
    error = UnknownTransportError(method="GET", url=URL, message="reset", cause=cause)
    envelope = ErrorEnvelope.from_error(error)
    assert envelope.status_code is None
    assert envelope.raw_body == ""
    assert not envelope.has_body


@pytest.mark.parametrize("body", ["", "  ", "\n"])
def test_error_envelope_blank_body(body: str) -> None:
    assert not ErrorEnvelope.from_error(make_error(body)).has_body


###############################
#     Tests for outcomes      #
###############################


def test_success() -> None:
    result = Success({"id": 1})
    assert result.is_success
    assert not result.recovered
    assert result.unwrap() == {"id": 1}


def test_recovered_from_error() -> None:
    envelope = ErrorEnvelope.from_error(make_error('{"id": 1}'))
    result = RecoveredFromError({"id": 1}, envelope)
    assert result.is_success
    assert result.recovered
    assert result.unwrap() == {"id": 1}
    assert result.envelope is envelope


def test_recovered_is_distinguishable_from_success() -> None:
    """Test that the same value is tagged differently."""
    envelope = ErrorEnvelope.from_error(make_error('{"id": 1}'))
    assert Success({"id": 1}) != RecoveredFromError({"id": 1}, envelope)


def test_failure_unwrap_reraises_original_error() -> None:
    error = make_error()
    result = Failure(ErrorEnvelope.from_error(error))
    assert not result.is_success
    assert not result.recovered
    assert result.value is None
    assert result.error is error
    with pytest.raises(HttpErrorResponse, match=r"409 Conflict") as exc_info:
        result.unwrap()
    assert exc_info.value is error
