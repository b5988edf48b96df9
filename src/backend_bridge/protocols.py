"""Protocol definitions for dependency injection.

These protocols define the collaborators the request-orchestration layer
depends on, so every service can be exercised with in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .exceptions import ClientError
from .types import ApiRequest, ApiResponse


@runtime_checkable
class HttpTransport(Protocol):
    """Performs one HTTP exchange with no retry, auth or classification."""

    async def send(self, request: ApiRequest) -> ApiResponse:
        """Send a request and return the response, whatever its status.

        Raises:
            Exception: Transport-level failures (connection refused, timeouts).
        """
        ...


@runtime_checkable
class KeyValueStorage(Protocol):
    """Persisted local state. Last write wins; no transactions."""

    def get(self, key: str) -> object | None:
        """Return the stored value, or None if absent."""
        ...

    def set(self, key: str, value: object) -> None:
        """Store a JSON-serialisable value."""
        ...

    def remove(self, *keys: str) -> None:
        """Delete keys; missing keys are ignored."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Time source and suspension primitive."""

    def now(self) -> float:
        """Return the current time in epoch seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the current task."""
        ...


@runtime_checkable
class RetryPolicy(Protocol):
    """Decides whether and when a failed submission is retried."""

    max_attempts: int

    def should_retry(self, error: ClientError, attempt: int) -> bool:
        """Return True if another attempt is allowed after `attempt` failed."""
        ...

    def compute_backoff(self, attempt: int, retry_after: float | None = None) -> float:
        """Return the delay before the next attempt."""
        ...


@runtime_checkable
class CredentialSource(Protocol):
    """Supplies a bearer token for outgoing requests."""

    async def get_valid_credential(self) -> str | None:
        """Return a usable access token, or None when not authenticated."""
        ...

    def clear(self) -> None:
        """Forget all stored credentials."""
        ...
