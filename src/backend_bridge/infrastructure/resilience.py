"""Resilience utilities for infrastructure.

Usage example:
    from backend_bridge.infrastructure.resilience import RetryPolicy

    retry_policy = RetryPolicy(max_attempts=3, initial_delay_seconds=1.0)
    delay = retry_policy.compute_backoff(attempt=1)
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import override

from ..exceptions import ClientError
from ..protocols import RetryPolicy as RetryPolicyProtocol


@dataclass
class RetryPolicy(RetryPolicyProtocol):
    """Retry policy for failed submissions.

    Only the retry-eligibility flag of the classified error is consulted.
    Delays grow exponentially per attempt (1-based) and are capped.
    """

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0
    jitter_seconds: float = 0.0

    @override
    def should_retry(self, error: ClientError, attempt: int) -> bool:
        return error.retryable and attempt < self.max_attempts

    @override
    def compute_backoff(self, attempt: int, retry_after: float | None = None) -> float:
        """Compute backoff delay with optional Retry-After override."""
        exponent = max(0, attempt - 1)
        base = min(
            self.max_backoff_seconds,
            self.initial_delay_seconds * (self.backoff_multiplier**exponent),
        )
        if retry_after is not None:
            base = max(base, float(retry_after))
        if self.jitter_seconds > 0:
            base += random.uniform(0.0, self.jitter_seconds)
        return float(base)
