"""Tests for inbound payload validation and the operation response decoder."""

import json

import pytest

from backend_bridge.domain.operations import Failed, Pending, Redirect, Sync
from backend_bridge.io_validation import (
    IncomingDataError,
    OperationResponseDecoder,
    error_detail,
    parse_case,
    parse_case_list,
    parse_session_response,
    parse_token_response,
)
from backend_bridge.types import ApiResponse

ANSWER = {"content": "Restart the pod.", "response_type": "ANSWER"}


def _response(
    status: int, body: object | None = None, headers: dict[str, str] | None = None
) -> ApiResponse:
    raw = b"" if body is None else json.dumps(body).encode()
    return ApiResponse(status_code=status, headers=headers or {}, body=raw)


@pytest.fixture
def decoder() -> OperationResponseDecoder:
    return OperationResponseDecoder()


def test_decode_final_body_is_sync(decoder: OperationResponseDecoder) -> None:
    assert decoder.decode(_response(200, ANSWER)) == Sync(ANSWER)


def test_decode_accepts_payload_nested_under_response(decoder: OperationResponseDecoder) -> None:
    outcome = decoder.decode(_response(200, {"status": "completed", "response": ANSWER}))

    assert outcome == Sync(ANSWER)


def test_decode_pending_job_keeps_location(decoder: OperationResponseDecoder) -> None:
    outcome = decoder.decode(_response(202, {"status": "RUNNING"}, {"location": "/jobs/1"}))

    assert outcome == Pending(location="/jobs/1", status="running")


def test_decode_empty_body_is_pending(decoder: OperationResponseDecoder) -> None:
    assert decoder.decode(_response(202, None, {"location": "/jobs/1"})) == Pending("/jobs/1")


def test_decode_failed_job_uses_server_message(decoder: OperationResponseDecoder) -> None:
    outcome = decoder.decode(_response(200, {"status": "failed", "error": {"message": "OOM"}}))

    assert outcome == Failed("OOM", status_code=200)


def test_decode_completed_without_payload_fails(decoder: OperationResponseDecoder) -> None:
    outcome = decoder.decode(_response(200, {"status": "completed"}))

    assert isinstance(outcome, Failed)


def test_decode_see_other(decoder: OperationResponseDecoder) -> None:
    assert decoder.decode(_response(303, None, {"location": "/answers/1"})) == Redirect(
        "/answers/1"
    )
    assert isinstance(decoder.decode(_response(303)), Failed)


def test_decode_server_error_fails(decoder: OperationResponseDecoder) -> None:
    assert decoder.decode(_response(502)) == Failed("Server error (502)", status_code=502)


def test_decode_final_rejects_non_final_payload(decoder: OperationResponseDecoder) -> None:
    assert decoder.decode_final(_response(200, ANSWER)) == Sync(ANSWER)
    assert isinstance(decoder.decode_final(_response(200, {"status": "running"})), Failed)
    assert isinstance(decoder.decode_final(_response(404)), Failed)


def test_parse_session_response_computes_expiry_from_timeout() -> None:
    session = parse_session_response(
        {
            "session_id": "s-1",
            "status": "active",
            "created_at": "2026-01-01T12:00:00Z",
            "session_resumed": True,
        },
        client_id="client-1",
        timeout_minutes=180,
        now=0.0,
    )

    assert session.resumed
    assert session.client_id == "client-1"
    assert session.expires_at.isoformat() == "2026-01-01T15:00:00+00:00"


def test_parse_session_response_rejects_missing_id() -> None:
    with pytest.raises(IncomingDataError):
        parse_session_response(
            {"status": "active", "created_at": "2026-01-01T12:00:00Z"},
            client_id="c",
            timeout_minutes=60,
            now=0.0,
        )


def test_parse_token_response_makes_expiries_absolute() -> None:
    credential = parse_token_response(
        {
            "access_token": "a",
            "expires_in": 3600,
            "refresh_token": "r",
            "refresh_expires_in": 86400,
        },
        now=1_000.0,
    )

    assert credential.expires_at == 4_600.0
    assert credential.refresh_expires_at == 87_400.0
    assert credential.token_type == "Bearer"


def test_parse_case_accepts_wrapped_and_bare_shapes() -> None:
    case = {"case_id": "c1", "title": "Latency"}

    assert parse_case({"case": case}) == case
    assert parse_case(case) == case
    with pytest.raises(IncomingDataError):
        parse_case({"case": {"case_id": "c1"}})


def test_parse_case_list_tolerates_unexpected_shapes() -> None:
    assert parse_case_list({"cases": [{"case_id": "c1"}, "junk"]}) == [{"case_id": "c1"}]
    assert parse_case_list(None) == []
    assert parse_case_list({"cases": "nope"}) == []


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ({"detail": "Bad title"}, "Bad title"),
        ({"detail": {"error": {"message": "Nested"}}}, "Nested"),
        ({"detail": [{"msg": "field required"}, {"msg": "too long"}]}, "field required; too long"),
        ({"error": {"message": "Top level"}}, "Top level"),
        ({"error_description": "invalid_grant"}, "invalid_grant"),
        ({}, None),
    ],
)
def test_error_detail(body: dict[str, object], expected: str | None) -> None:
    assert error_detail(body) == expected
