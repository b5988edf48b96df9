"""Pydantic-based validation helpers for inbound backend payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime

from pydantic import TypeAdapter, ValidationError

from .domain.operations import Failed, Pending, PollOutcome, Redirect, Sync
from .domain.sessions import Credential, Session, compute_expiry
from .io_contracts import (
    AgentResponseIO,
    CaseIO,
    JobStatusIO,
    SessionCreateResponseIO,
    TokenResponseIO,
)
from .types import ApiResponse


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


def validate_as[SchemaT](schema: type[SchemaT], payload: object) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as exc:
        message = f"Invalid payload for {schema}."
        raise IncomingDataError(message) from exc


def matches[SchemaT](schema: type[SchemaT], payload: object) -> bool:
    try:
        TypeAdapter(schema).validate_python(payload)
    except ValidationError:
        return False
    return True


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise IncomingDataError(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_session_response(
    payload: object, *, client_id: str, timeout_minutes: int, now: float
) -> Session:
    response = validate_as(SessionCreateResponseIO, payload)
    created_at = parse_timestamp(response["created_at"]) or datetime.fromtimestamp(now, UTC)
    return Session(
        session_id=response["session_id"],
        status=response["status"],
        created_at=created_at,
        expires_at=compute_expiry(
            created_at, timeout_minutes, parse_timestamp(response.get("expires_at"))
        ),
        resumed=bool(response.get("session_resumed")),
        client_id=response.get("client_id") or client_id,
        user_id=response.get("user_id"),
        session_type=response.get("session_type"),
        message=response.get("message"),
        metadata=response.get("metadata") or {},
    )


def parse_token_response(payload: object, *, now: float) -> Credential:
    tokens = validate_as(TokenResponseIO, payload)
    return Credential(
        access_token=tokens["access_token"],
        token_type=tokens.get("token_type", "Bearer"),
        expires_at=now + tokens["expires_in"],
        refresh_token=tokens["refresh_token"],
        refresh_expires_at=now + tokens["refresh_expires_in"],
    )


def parse_case(payload: object) -> dict[str, object]:
    """Accept `{"case": {...}}` or a bare case object."""
    data = validate_as(dict[str, object], payload)
    nested = data.get("case")
    case = nested if isinstance(nested, dict) else data
    validate_as(CaseIO, case)
    return dict(case)


def parse_case_list(payload: object) -> list[dict[str, object]]:
    if not isinstance(payload, dict):
        return []
    raw_cases = payload.get("cases")
    if not isinstance(raw_cases, list):
        return []
    return [dict(item) for item in raw_cases if isinstance(item, dict)]


def error_detail(body: Mapping[str, object]) -> str | None:
    """Extract a human-readable message from a backend error body."""
    detail = body.get("detail")
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        inner = detail.get("error")
        if isinstance(inner, dict) and isinstance(inner.get("message"), str):
            return str(inner["message"])
        if isinstance(detail.get("message"), str):
            return str(detail["message"])
    if isinstance(detail, list) and detail:
        messages = [
            str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail
        ]
        return "; ".join(messages)
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return str(error["message"])
    if isinstance(body.get("error_description"), str):
        return str(body["error_description"])
    return None


class OperationResponseDecoder:
    """Turns raw responses into tagged poll outcomes.

    This is the only place that guesses what a payload means. The final
    payload shape is a TypedDict schema, `AgentResponseIO` by default; it
    may be the body itself or nested under `response`.
    """

    def __init__(self, final_schema: type[object] = AgentResponseIO) -> None:
        self.final_schema = final_schema

    def final_payload(self, body: object) -> Mapping[str, object] | None:
        if not isinstance(body, dict):
            return None
        if matches(self.final_schema, body):
            return body
        nested = body.get("response")
        if isinstance(nested, dict) and matches(self.final_schema, nested):
            return nested
        return None

    def decode(self, response: ApiResponse) -> PollOutcome:
        status = response.status_code
        if status >= 500:
            return Failed(f"Server error ({status})", status_code=status)
        if status == 303:
            location = response.location
            if not location:
                return Failed("Missing final resource Location", status_code=status)
            return Redirect(location)
        if not response.ok:
            return Failed(f"Unexpected status {status}", status_code=status)

        body = response.json()
        payload = self.final_payload(body)
        if payload is not None:
            return Sync(payload)
        try:
            job = validate_as(JobStatusIO, body if isinstance(body, dict) else {})
        except IncomingDataError:
            return Failed("Unexpected job status payload", status_code=status)
        job_status = (job.get("status") or "").lower() or None
        if job_status == "failed":
            error = job.get("error") or {}
            return Failed(error.get("message") or "Operation failed", status_code=status)
        if job_status == "completed":
            return Failed("Completed without a final payload", status_code=status)
        return Pending(location=response.location, status=job_status)

    def decode_final(self, response: ApiResponse) -> PollOutcome:
        """Decode the single fetch that follows a 303; anything but a final payload fails."""
        if not response.ok:
            return Failed(
                f"Final resource fetch failed ({response.status_code})",
                status_code=response.status_code,
            )
        payload = self.final_payload(response.json())
        if payload is None:
            return Failed("Unexpected final resource payload", status_code=response.status_code)
        return Sync(payload)
