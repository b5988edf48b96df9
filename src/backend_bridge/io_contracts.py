"""Backend payload contracts validated at the IO boundary.

Usage example:
    from backend_bridge.io_contracts import AgentResponseIO

    answer: AgentResponseIO = {"content": "Restart the pod.", "response_type": "ANSWER"}
"""

from __future__ import annotations

from typing import Annotated, NotRequired, TypedDict

from pydantic import Field

NonEmptyStr = Annotated[str, Field(min_length=1)]


class SessionCreateRequestIO(TypedDict):
    """Body sent to `POST /api/v1/sessions`."""

    client_id: str
    session_type: str
    timeout_minutes: int
    metadata: NotRequired[dict[str, object]]


class SessionCreateResponseIO(TypedDict):
    """Session creation or resumption answer."""

    session_id: NonEmptyStr
    status: str
    created_at: str
    client_id: NotRequired[str | None]
    user_id: NotRequired[str | None]
    session_type: NotRequired[str | None]
    session_resumed: NotRequired[bool | None]
    expires_at: NotRequired[str | None]
    message: NotRequired[str | None]
    metadata: NotRequired[dict[str, object] | None]


class TokenResponseIO(TypedDict):
    """OAuth token grant answer (refresh tokens are rotated)."""

    access_token: NonEmptyStr
    expires_in: float
    refresh_token: NonEmptyStr
    refresh_expires_in: float
    token_type: NotRequired[str]


class AgentResponseIO(TypedDict):
    """Final payload of a query submission."""

    content: NonEmptyStr
    response_type: NonEmptyStr
    session_id: NotRequired[str | None]
    case_id: NotRequired[str | None]


class JobErrorIO(TypedDict, total=False):
    message: str | None


class JobStatusIO(TypedDict, total=False):
    """Body returned by a polled job location."""

    status: str
    error: JobErrorIO | None
    response: dict[str, object] | None


class CaseIO(TypedDict):
    """A case as listed by the backend."""

    case_id: NonEmptyStr
    title: NonEmptyStr
    status: NotRequired[str]
