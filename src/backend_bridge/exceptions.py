"""Custom exceptions for backend_bridge.

Every failure surfaced to callers is a `ClientError` carrying a stable kind,
the retry-eligibility flag and recovery strategy from the taxonomy, the HTTP
status and server detail when there was one, and an `ErrorContext` for
correlation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .domain.errors import ErrorContext, ErrorKind, RecoveryStrategy, policy_for

if TYPE_CHECKING:
    from .domain.operations import AsyncOperation, OperationState


class BridgeError(Exception):
    """Base exception for all backend_bridge errors."""

    pass


class ClientError(BridgeError):
    """Structured, classified failure of a backend interaction."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        detail: str | None = None,
        context: ErrorContext | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        self.status = status
        self.detail = detail
        self.context = context or ErrorContext()
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return policy_for(self.kind).retryable

    @property
    def recovery(self) -> RecoveryStrategy:
        return policy_for(self.kind).recovery

    @property
    def user_message(self) -> str:
        return self.detail or str(self)

    def with_context(self, context: ErrorContext) -> ClientError:
        """Fill fields the raise site left unset. A given attempt number always applies."""
        recorded = self.context
        self.context = ErrorContext(
            operation=recorded.operation or context.operation,
            resource_id=recorded.resource_id or context.resource_id,
            correlation_id=recorded.correlation_id or context.correlation_id,
            attempt=recorded.attempt if context.attempt is None else context.attempt,
            metadata={**context.metadata, **recorded.metadata},
        )
        return self

    def __str__(self) -> str:
        message = super().__str__()
        described = self.context.describe()
        return f"{message} ({described})" if described else message


class AuthenticationError(ClientError):
    """Credentials were rejected or are missing; the user must sign in again."""

    kind = ErrorKind.AUTHENTICATION


class NetworkError(ClientError):
    """No response was received from the backend."""

    kind = ErrorKind.NETWORK


class RequestTimeoutError(ClientError):
    """The backend did not answer in time."""

    kind = ErrorKind.TIMEOUT


class ServerError(ClientError):
    """The backend answered with a 5xx status."""

    kind = ErrorKind.SERVER


class ValidationError(ClientError):
    """The backend rejected the request payload."""

    kind = ErrorKind.VALIDATION


class RateLimitError(ClientError):
    """The backend asked the client to slow down (429 Too Many Requests)."""

    kind = ErrorKind.RATE_LIMIT


class SessionExpiredError(ClientError):
    """The backend session is no longer valid."""

    kind = ErrorKind.SESSION_EXPIRED


class OptimisticRollbackError(ClientError):
    """A mutation failed after local state had been updated optimistically."""

    kind = ErrorKind.OPTIMISTIC_ROLLBACK

    def __init__(
        self,
        action: str,
        message: str,
        *,
        status: int | None = None,
        detail: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        self.action = action
        super().__init__(message, status=status, detail=detail, context=context)

    @property
    def user_message(self) -> str:
        return f"Your {self.action} couldn't be completed."


class UnknownClientError(ClientError):
    """Failure that fits no other category."""

    kind = ErrorKind.UNKNOWN


# OPTIMISTIC_ROLLBACK is absent: `OptimisticRollbackError` needs the failed action and is
# raised directly by the mutation that rolled back.
_ERRORS_BY_KIND: dict[ErrorKind, type[ClientError]] = {
    ErrorKind.AUTHENTICATION: AuthenticationError,
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.TIMEOUT: RequestTimeoutError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.RATE_LIMIT: RateLimitError,
    ErrorKind.SESSION_EXPIRED: SessionExpiredError,
    ErrorKind.UNKNOWN: UnknownClientError,
}


def error_for_kind(
    kind: ErrorKind,
    message: str,
    *,
    status: int | None = None,
    detail: str | None = None,
    context: ErrorContext | None = None,
    retry_after_seconds: float | None = None,
) -> ClientError:
    """Construct the `ClientError` subclass registered for `kind`.

    Raises:
        ValueError: No subclass can be built from these arguments for `kind`.
    """
    error_type = _ERRORS_BY_KIND.get(kind)
    if error_type is None:
        raise ValueError(f"No error type is registered for kind {kind!r}")
    return error_type(
        message,
        status=status,
        detail=detail,
        context=context,
        retry_after_seconds=retry_after_seconds,
    )


class OperationFailedError(ClientError):
    """A submitted operation reached the FAILED state."""

    def __init__(self, operation: AsyncOperation, *, context: ErrorContext | None = None) -> None:
        self.operation = operation
        status = operation.status_code
        self.kind = ErrorKind.SERVER if status is not None and status >= 500 else ErrorKind.UNKNOWN
        reason = operation.error or "operation failed"
        super().__init__(
            f"{operation.name} failed: {reason}",
            status=status,
            detail=operation.error,
            context=context,
        )


class OperationTimedOutError(ClientError):
    """A submitted operation did not complete within the maximum total wait."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, operation: AsyncOperation, *, context: ErrorContext | None = None) -> None:
        self.operation = operation
        super().__init__(
            f"{operation.name} polling timed out after {round(operation.elapsed_seconds)}s",
            context=context,
        )


class InvalidOperationTransitionError(BridgeError):
    """Raised when an operation would move to an earlier state."""

    def __init__(self, current: OperationState, requested: OperationState) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move operation from {current} to {requested}.")


class ConfigFileError(BridgeError):
    """Base class for configuration file problems."""


class ConfigFileNotFoundError(ConfigFileError):
    """Raised when a requested config file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(ConfigFileError):
    """Raised when a config file is not valid TOML."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(f"Config file is not valid TOML: {path} ({details})")


class ConfigFileValidationError(ConfigFileError):
    """Raised when a config file has unsupported keys or values."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(f"Config file {path} is invalid: {details}")
