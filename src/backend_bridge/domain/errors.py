"""Closed error taxonomy and pure classification rules.

Every failure that crosses the client boundary is mapped to exactly one
`ErrorKind`. The kind determines the default `RecoveryStrategy` and whether
automatic retry is allowed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum


class ErrorKind(StrEnum):
    """Failure categories understood by the retry and recovery layers."""

    AUTHENTICATION = "authentication"
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    SESSION_EXPIRED = "session_expired"
    OPTIMISTIC_ROLLBACK = "optimistic_rollback"
    UNKNOWN = "unknown"


class RecoveryStrategy(StrEnum):
    """What the caller should do after a failure of a given kind."""

    REAUTHENTICATE = "reauthenticate"
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    MANUAL_RETRY = "manual_retry"
    USER_FIX_REQUIRED = "user_fix_required"
    AUTO_RETRY_WITH_DELAY = "auto_retry_with_delay"
    SESSION_REPAIR = "session_repair"
    ROLLBACK_AND_RETRY = "rollback_and_retry"


@dataclass(frozen=True)
class KindPolicy:
    """Default recovery behaviour for one error kind."""

    recovery: RecoveryStrategy
    retryable: bool


TAXONOMY: Mapping[ErrorKind, KindPolicy] = {
    ErrorKind.AUTHENTICATION: KindPolicy(RecoveryStrategy.REAUTHENTICATE, retryable=False),
    ErrorKind.NETWORK: KindPolicy(RecoveryStrategy.RETRY_WITH_BACKOFF, retryable=True),
    ErrorKind.TIMEOUT: KindPolicy(RecoveryStrategy.MANUAL_RETRY, retryable=True),
    ErrorKind.SERVER: KindPolicy(RecoveryStrategy.MANUAL_RETRY, retryable=True),
    ErrorKind.VALIDATION: KindPolicy(RecoveryStrategy.USER_FIX_REQUIRED, retryable=False),
    ErrorKind.RATE_LIMIT: KindPolicy(RecoveryStrategy.AUTO_RETRY_WITH_DELAY, retryable=True),
    ErrorKind.SESSION_EXPIRED: KindPolicy(RecoveryStrategy.SESSION_REPAIR, retryable=False),
    ErrorKind.OPTIMISTIC_ROLLBACK: KindPolicy(
        RecoveryStrategy.ROLLBACK_AND_RETRY, retryable=False
    ),
    ErrorKind.UNKNOWN: KindPolicy(RecoveryStrategy.MANUAL_RETRY, retryable=False),
}

SESSION_EXPIRED_CODE = "SESSION_EXPIRED"

_SESSION_EXPIRY_PHRASES = ("session expired", "session not found")
_SESSION_INVALID_PHRASES = ("session not found", "session expired", "invalid session")
_SESSION_INVALID_STATUSES = frozenset({404, 410})


@dataclass(frozen=True)
class ErrorContext:
    """Correlation data attached to a classified error."""

    operation: str | None = None
    resource_id: str | None = None
    correlation_id: str | None = None
    attempt: int | None = None
    metadata: Mapping[str, object] = field(default_factory=dict)

    def with_attempt(self, attempt: int) -> ErrorContext:
        return replace(self, attempt=attempt)

    def describe(self) -> str:
        parts = [
            f"{name}={value}"
            for name, value in (
                ("operation", self.operation),
                ("resource", self.resource_id),
                ("correlation", self.correlation_id),
                ("attempt", self.attempt),
            )
            if value is not None
        ]
        return ", ".join(parts)


def policy_for(kind: ErrorKind) -> KindPolicy:
    return TAXONOMY[kind]


def kind_for_status(status: int) -> ErrorKind:
    """Map an HTTP status code to an error kind."""
    if status in (400, 409, 422):
        return ErrorKind.VALIDATION
    if status in (401, 403):
        return ErrorKind.AUTHENTICATION
    if status in (408, 504):
        return ErrorKind.TIMEOUT
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if 500 <= status < 600:
        return ErrorKind.SERVER
    return ErrorKind.UNKNOWN


def is_session_expiry_signal(body: Mapping[str, object] | None) -> bool:
    """Return True when a 401 body reports an expired session rather than bad credentials.

    The structured `code` field is authoritative. Older backends only put the
    reason in `detail`, so a fixed phrase list is checked as a fallback.
    """
    if not body:
        return False
    if body.get("code") == SESSION_EXPIRED_CODE:
        return True
    detail = body.get("detail")
    if not isinstance(detail, str):
        return False
    lowered = detail.lower()
    return any(phrase in lowered for phrase in _SESSION_EXPIRY_PHRASES)


def is_session_invalid(kind: ErrorKind, status: int | None, detail: str | None) -> bool:
    """Return True when a session-creation failure means the resumable session is gone."""
    if kind is ErrorKind.SESSION_EXPIRED:
        return True
    if status in _SESSION_INVALID_STATUSES:
        return True
    if not detail:
        return False
    lowered = detail.lower()
    return any(phrase in lowered for phrase in _SESSION_INVALID_PHRASES)
