"""Tests for retrying operations under the retry policy."""

from collections.abc import Awaitable, Callable, Sequence

import httpx
import pytest

from backend_bridge.application.resilient_operation import run_resilient
from backend_bridge.domain.errors import ErrorContext, ErrorKind
from backend_bridge.exceptions import (
    ClientError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from backend_bridge.infrastructure.resilience import RetryPolicy
from tests.fakes import FakeClock


type Operation = Callable[[], Awaitable[str]]


def _scripted(outcomes: Sequence[BaseException | str]) -> tuple[Operation, list[int]]:
    calls: list[int] = []

    async def operation() -> str:
        calls.append(len(calls) + 1)
        outcome = outcomes[min(len(calls), len(outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return operation, calls


async def test_recovers_after_transient_failures(clock: FakeClock) -> None:
    operation, calls = _scripted([NetworkError("down"), NetworkError("down"), "cases"])
    seen: list[tuple[ErrorKind, int]] = []

    result = await run_resilient(
        operation,
        clock=clock,
        context=ErrorContext(operation="list_cases"),
        on_error=lambda error, attempt: seen.append((error.kind, attempt)),
    )

    assert result == "cases"
    assert len(calls) == 3
    assert clock.sleeps == [1.0, 2.0]
    assert seen == [(ErrorKind.NETWORK, 1), (ErrorKind.NETWORK, 2)]


async def test_non_retryable_failure_is_raised_immediately(clock: FakeClock) -> None:
    rejected = ValidationError("title too long", status=422)
    operation, calls = _scripted([rejected])
    failures: list[ClientError] = []

    with pytest.raises(ValidationError) as exc_info:
        await run_resilient(operation, clock=clock, on_failure=failures.append)

    assert exc_info.value is rejected
    assert failures == [rejected]
    assert len(calls) == 1
    assert clock.sleeps == []


async def test_gives_up_after_max_attempts(clock: FakeClock) -> None:
    operation, calls = _scripted([NetworkError("down")])
    failures: list[ClientError] = []

    with pytest.raises(NetworkError):
        await run_resilient(operation, clock=clock, on_failure=failures.append)

    assert len(calls) == 3
    assert clock.sleeps == [1.0, 2.0]
    assert len(failures) == 1


async def test_raw_transport_errors_are_classified_and_chained(clock: FakeClock) -> None:
    raw = httpx.ConnectError("refused")
    operation, _ = _scripted([raw])

    with pytest.raises(NetworkError) as exc_info:
        await run_resilient(
            operation,
            clock=clock,
            context=ErrorContext(operation="list_cases"),
            policy=RetryPolicy(max_attempts=1),
        )

    assert exc_info.value.__cause__ is raw
    assert exc_info.value.context is not None
    assert exc_info.value.context.attempt == 1


async def test_rate_limit_waits_at_least_retry_after(clock: FakeClock) -> None:
    operation, _ = _scripted([RateLimitError("slow down", status=429, retry_after_seconds=7), "ok"])

    assert await run_resilient(operation, clock=clock) == "ok"
    assert clock.sleeps == [7.0]


async def test_attempt_number_reaches_errors_raised_with_context(clock: FakeClock) -> None:
    down = NetworkError("down", context=ErrorContext(operation="list_cases", resource_id="c1"))
    operation, _ = _scripted([down])
    attempts: list[int | None] = []

    with pytest.raises(NetworkError) as exc_info:
        await run_resilient(
            operation,
            clock=clock,
            on_error=lambda error, _attempt: attempts.append(error.context.attempt),
        )

    assert attempts == [1, 2, 3]
    assert exc_info.value.context.operation == "list_cases"
    assert exc_info.value.context.resource_id == "c1"
    assert "attempt=3" in str(exc_info.value)
