"""Session and credential value objects."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

MIN_SESSION_TIMEOUT_MINUTES = 60
MAX_SESSION_TIMEOUT_MINUTES = 480
DEFAULT_SESSION_TIMEOUT_MINUTES = 180


def clamp_session_timeout(
    timeout_minutes: int,
    *,
    minimum: int = MIN_SESSION_TIMEOUT_MINUTES,
    maximum: int = MAX_SESSION_TIMEOUT_MINUTES,
) -> int:
    """Clamp a requested session timeout to the supported range."""
    return max(minimum, min(maximum, timeout_minutes))


@dataclass(frozen=True)
class Session:
    """A backend session owned by this client identity."""

    session_id: str
    status: str
    created_at: datetime
    expires_at: datetime
    resumed: bool
    client_id: str
    user_id: str | None = None
    session_type: str | None = None
    message: str | None = None
    metadata: Mapping[str, object] = field(default_factory=dict)


def compute_expiry(
    created_at: datetime, timeout_minutes: int, reported_expiry: datetime | None
) -> datetime:
    """Prefer the backend's expiry; fall back to creation time plus timeout."""
    if reported_expiry is not None:
        return reported_expiry
    return created_at + timedelta(minutes=timeout_minutes)


@dataclass(frozen=True)
class Credential:
    """Access and refresh tokens with absolute expiries (epoch seconds)."""

    access_token: str
    expires_at: float
    refresh_token: str
    refresh_expires_at: float
    token_type: str = "Bearer"

    def remaining_validity(self, now: float) -> float:
        return self.expires_at - now

    def refresh_expired(self, now: float) -> bool:
        return self.refresh_expires_at <= now

    def to_storage(self) -> dict[str, object]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_at": self.expires_at,
            "refresh_token": self.refresh_token,
            "refresh_expires_at": self.refresh_expires_at,
        }
