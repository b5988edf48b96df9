"""Completion state machine for submitted operations.

The backend may answer a submission synchronously (200/201 with the final
payload) or defer it to a job (201/202 with a `Location` to poll). The
functions here are pure transitions `(operation, outcome) -> operation`;
`application.polling` drives them and owns all waiting.

States:
    SUBMITTED -> SYNC_DONE | ACCEPTED | CREATED | FAILED
    ACCEPTED/CREATED -> (poll loop) -> REDIRECTED -> DONE | FAILED
    ACCEPTED/CREATED -> DONE | FAILED | TIMED_OUT
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import StrEnum

from ..exceptions import InvalidOperationTransitionError


class OperationState(StrEnum):
    SUBMITTED = "submitted"
    SYNC_DONE = "sync_done"
    ACCEPTED = "accepted"
    CREATED = "created"
    REDIRECTED = "redirected"
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


_RANK: Mapping[OperationState, int] = {
    OperationState.SUBMITTED: 0,
    OperationState.SYNC_DONE: 1,
    OperationState.ACCEPTED: 1,
    OperationState.CREATED: 1,
    OperationState.REDIRECTED: 2,
    OperationState.DONE: 3,
    OperationState.FAILED: 3,
    OperationState.TIMED_OUT: 3,
}

TERMINAL_STATES = frozenset(
    {
        OperationState.SYNC_DONE,
        OperationState.DONE,
        OperationState.FAILED,
        OperationState.TIMED_OUT,
    }
)
POLLING_STATES = frozenset({OperationState.ACCEPTED, OperationState.CREATED})


# Decoded backend answers. `io_validation.OperationResponseDecoder` is the only
# producer; nothing else inspects payload shape.


@dataclass(frozen=True)
class Sync:
    """The response carried the final payload."""

    payload: Mapping[str, object]


@dataclass(frozen=True)
class Pending:
    """The work is still in progress; `location` is where to poll, when given."""

    location: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class Redirect:
    """The job finished and the final resource lives at `location` (303 See Other)."""

    location: str


@dataclass(frozen=True)
class Failed:
    """The backend reported failure or answered outside the contract."""

    reason: str
    status_code: int | None = None


PollOutcome = Sync | Pending | Redirect | Failed


@dataclass(frozen=True)
class PollSchedule:
    """Backoff parameters for the poll loop, in seconds."""

    initial_delay_seconds: float = 1.5
    backoff_factor: float = 1.5
    max_delay_seconds: float = 10.0
    max_total_wait_seconds: float = 300.0

    def next_delay(self, delay_seconds: float) -> float:
        return min(delay_seconds * self.backoff_factor, self.max_delay_seconds)

    def growth_steps_to_cap(self) -> int:
        """Number of delay increases before the delay reaches its cap."""
        if self.backoff_factor <= 1 or self.initial_delay_seconds >= self.max_delay_seconds:
            return 0
        ratio = self.max_delay_seconds / self.initial_delay_seconds
        return math.ceil(math.log(ratio) / math.log(self.backoff_factor))


@dataclass(frozen=True)
class AsyncOperation:
    """One submitted request and everything known about its completion."""

    name: str
    state: OperationState = OperationState.SUBMITTED
    location: str | None = None
    result: Mapping[str, object] | None = None
    error: str | None = None
    status_code: int | None = None
    delay_seconds: float = 0.0
    elapsed_seconds: float = 0.0
    polls: int = 0
    delay_growth_steps: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_polling(self) -> bool:
        return self.state in POLLING_STATES

    @property
    def succeeded(self) -> bool:
        return self.state in (OperationState.SYNC_DONE, OperationState.DONE)

    def advance(self, state: OperationState, **changes: object) -> AsyncOperation:
        """Return a copy in `state`; states never move backward."""
        if not can_transition(self.state, state):
            raise InvalidOperationTransitionError(self.state, state)
        return replace(self, state=state, **changes)  # type: ignore[arg-type]


def can_transition(current: OperationState, requested: OperationState) -> bool:
    if current in TERMINAL_STATES:
        return False
    if requested == current:
        return current in POLLING_STATES
    return _RANK[requested] > _RANK[current]


def start(name: str, schedule: PollSchedule) -> AsyncOperation:
    return AsyncOperation(name=name, delay_seconds=schedule.initial_delay_seconds)


def on_submission(op: AsyncOperation, status_code: int, outcome: PollOutcome) -> AsyncOperation:
    """Apply the initial submission response."""
    if isinstance(outcome, Sync):
        return op.advance(OperationState.SYNC_DONE, result=outcome.payload, status_code=status_code)
    if isinstance(outcome, Failed):
        return op.advance(
            OperationState.FAILED,
            error=outcome.reason,
            status_code=outcome.status_code or status_code,
        )
    if status_code in (201, 202):
        location = outcome.location if isinstance(outcome, Pending) else None
        if not location:
            return op.advance(
                OperationState.FAILED,
                error=f"Missing Location header on {status_code} response",
                status_code=status_code,
            )
        state = OperationState.ACCEPTED if status_code == 202 else OperationState.CREATED
        return op.advance(state, location=location, status_code=status_code)
    return op.advance(
        OperationState.FAILED,
        error=f"Response did not match the final payload contract (status {status_code})",
        status_code=status_code,
    )


def on_poll(op: AsyncOperation, outcome: PollOutcome) -> AsyncOperation:
    """Apply one polled response while ACCEPTED or CREATED."""
    polls = op.polls + 1
    if isinstance(outcome, Sync):
        return op.advance(OperationState.DONE, result=outcome.payload, polls=polls)
    if isinstance(outcome, Redirect):
        return op.advance(
            OperationState.REDIRECTED, location=outcome.location, status_code=303, polls=polls
        )
    if isinstance(outcome, Failed):
        return op.advance(
            OperationState.FAILED,
            error=outcome.reason,
            status_code=outcome.status_code,
            polls=polls,
        )
    return op.advance(op.state, polls=polls)


def on_final_fetch(op: AsyncOperation, outcome: PollOutcome) -> AsyncOperation:
    """Apply the single fetch of the resource a 303 pointed at."""
    if isinstance(outcome, Sync):
        return op.advance(OperationState.DONE, result=outcome.payload)
    if isinstance(outcome, Failed):
        return op.advance(OperationState.FAILED, error=outcome.reason, status_code=outcome.status_code)
    return op.advance(OperationState.FAILED, error="Unexpected final resource payload")


def on_wait(op: AsyncOperation, elapsed_seconds: float, schedule: PollSchedule) -> AsyncOperation:
    """Record time spent waiting between polls and grow the delay."""
    if elapsed_seconds > schedule.max_total_wait_seconds:
        return op.advance(OperationState.TIMED_OUT, elapsed_seconds=elapsed_seconds)
    next_delay = schedule.next_delay(op.delay_seconds)
    grew = next_delay > op.delay_seconds
    return op.advance(
        op.state,
        elapsed_seconds=elapsed_seconds,
        delay_seconds=next_delay,
        delay_growth_steps=op.delay_growth_steps + int(grew),
    )
