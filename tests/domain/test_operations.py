"""Tests for the operation completion state machine."""

import pytest

from backend_bridge.domain import operations
from backend_bridge.domain.operations import (
    AsyncOperation,
    Failed,
    OperationState,
    Pending,
    PollSchedule,
    Redirect,
    Sync,
    can_transition,
)
from backend_bridge.exceptions import InvalidOperationTransitionError

SCHEDULE = PollSchedule()
ANSWER = {"content": "Restart the pod.", "response_type": "ANSWER"}


def _accepted() -> AsyncOperation:
    op = operations.start("submit_query", SCHEDULE)
    return operations.on_submission(op, 202, Pending(location="/jobs/1"))


def test_start_uses_initial_delay() -> None:
    op = operations.start("submit_query", SCHEDULE)

    assert op.state is OperationState.SUBMITTED
    assert op.delay_seconds == 1.5


def test_submission_with_final_payload_is_sync_done() -> None:
    op = operations.on_submission(operations.start("q", SCHEDULE), 200, Sync(ANSWER))

    assert op.state is OperationState.SYNC_DONE
    assert op.succeeded
    assert op.result == ANSWER


def test_submission_202_with_location_is_accepted() -> None:
    op = _accepted()

    assert op.state is OperationState.ACCEPTED
    assert op.location == "/jobs/1"
    assert op.is_polling


def test_submission_201_with_location_is_created() -> None:
    op = operations.on_submission(
        operations.start("q", SCHEDULE), 201, Pending(location="/queries/9")
    )

    assert op.state is OperationState.CREATED


@pytest.mark.parametrize("status", [201, 202])
def test_submission_without_location_fails(status: int) -> None:
    op = operations.on_submission(operations.start("q", SCHEDULE), status, Pending())

    assert op.state is OperationState.FAILED
    assert op.error == f"Missing Location header on {status} response"


def test_submission_200_without_final_payload_fails() -> None:
    op = operations.on_submission(operations.start("q", SCHEDULE), 200, Pending())

    assert op.state is OperationState.FAILED


def test_poll_outcomes() -> None:
    assert operations.on_poll(_accepted(), Sync(ANSWER)).state is OperationState.DONE
    redirected = operations.on_poll(_accepted(), Redirect("/answers/1"))
    assert redirected.state is OperationState.REDIRECTED
    assert redirected.location == "/answers/1"
    failed = operations.on_poll(_accepted(), Failed("model crashed", status_code=200))
    assert failed.state is OperationState.FAILED
    assert failed.error == "model crashed"
    pending = operations.on_poll(_accepted(), Pending(status="running"))
    assert pending.state is OperationState.ACCEPTED
    assert pending.polls == 1


def test_final_fetch_requires_final_payload() -> None:
    redirected = operations.on_poll(_accepted(), Redirect("/answers/1"))

    assert operations.on_final_fetch(redirected, Sync(ANSWER)).state is OperationState.DONE
    assert operations.on_final_fetch(redirected, Pending()).state is OperationState.FAILED


def test_on_wait_grows_delay_until_cap() -> None:
    op = _accepted()
    delays = []
    for elapsed in range(1, 8):
        op = operations.on_wait(op, float(elapsed), SCHEDULE)
        delays.append(op.delay_seconds)

    assert delays == [2.25, 3.375, 5.0625, 7.59375, 10.0, 10.0, 10.0]
    assert op.delay_growth_steps == SCHEDULE.growth_steps_to_cap() == 5


def test_on_wait_times_out_once_elapsed_exceeds_budget() -> None:
    op = _accepted()

    assert operations.on_wait(op, 300.0, SCHEDULE).state is OperationState.ACCEPTED
    timed_out = operations.on_wait(op, 300.001, SCHEDULE)
    assert timed_out.state is OperationState.TIMED_OUT
    assert timed_out.elapsed_seconds == 300.001


def test_growth_steps_to_cap_edge_cases() -> None:
    assert PollSchedule(initial_delay_seconds=10, max_delay_seconds=10).growth_steps_to_cap() == 0
    assert PollSchedule(backoff_factor=1.0).growth_steps_to_cap() == 0
    assert PollSchedule(initial_delay_seconds=1, backoff_factor=2).growth_steps_to_cap() == 4


def test_states_never_move_backward() -> None:
    done = operations.on_poll(_accepted(), Sync(ANSWER))

    with pytest.raises(InvalidOperationTransitionError):
        done.advance(OperationState.ACCEPTED)
    with pytest.raises(InvalidOperationTransitionError):
        _accepted().advance(OperationState.SUBMITTED)


def test_can_transition_rules() -> None:
    assert can_transition(OperationState.ACCEPTED, OperationState.ACCEPTED)
    assert not can_transition(OperationState.SUBMITTED, OperationState.SUBMITTED)
    assert not can_transition(OperationState.ACCEPTED, OperationState.CREATED)
    assert can_transition(OperationState.REDIRECTED, OperationState.DONE)
    assert not can_transition(OperationState.TIMED_OUT, OperationState.DONE)
