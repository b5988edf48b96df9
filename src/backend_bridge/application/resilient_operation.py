"""Run an async operation under the retry policy with classified failures.

Usage example:
    from backend_bridge.application.resilient_operation import run_resilient
    from backend_bridge.domain.errors import ErrorContext

    cases = await run_resilient(
        service.list_cases,
        context=ErrorContext(operation="list_cases"),
        clock=clock,
    )
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from ..domain.errors import ErrorContext
from ..exceptions import ClientError
from ..infrastructure.resilience import RetryPolicy as DefaultRetryPolicy
from ..observability import get_logger
from ..protocols import Clock, RetryPolicy
from .classifier import ErrorClassifier

logger = get_logger("backend_bridge.application.resilient_operation")

type ErrorObserver = Callable[[ClientError, int], None]
type FailureObserver = Callable[[ClientError], None]


async def run_resilient[T](
    operation: Callable[[], Awaitable[T]],
    *,
    clock: Clock,
    context: ErrorContext | None = None,
    policy: RetryPolicy | None = None,
    classifier: ErrorClassifier | None = None,
    on_error: ErrorObserver | None = None,
    on_failure: FailureObserver | None = None,
) -> T:
    """Await `operation`, retrying retryable failures with backoff.

    Every failure is classified and reported to `on_error` with its 1-based
    attempt number, whether or not it is retried. The final failure is
    reported to `on_failure` and raised chained to its cause.
    """
    policy = policy or DefaultRetryPolicy()
    classifier = classifier or ErrorClassifier()
    base_context = context or ErrorContext()
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            error = classifier.classify(exc, base_context.with_attempt(attempt))
            if on_error is not None:
                on_error(error, attempt)
            if not policy.should_retry(error, attempt):
                if on_failure is not None:
                    on_failure(error)
                if error is exc:
                    raise
                raise error from exc
            delay = policy.compute_backoff(attempt, error.retry_after_seconds)
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %.1fs",
                attempt,
                policy.max_attempts,
                error.kind,
                delay,
            )
        await clock.sleep(delay)
        attempt += 1
