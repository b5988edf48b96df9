"""Recovery plans: what a caller can offer the user after a classified failure.

Usage example:
    from backend_bridge.application.recovery import RecoveryPlanBuilder

    plan = (
        RecoveryPlanBuilder(error)
        .on_retry(resend_query)
        .on_reauthenticate(open_sign_in)
        .build()
    )
    if plan.auto_retry:
        await clock.sleep(plan.retry_delay_seconds or 0)
        await plan.primary_action.run()
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ..domain.errors import RecoveryStrategy
from ..exceptions import ClientError

type RecoveryCallback = Callable[[], Awaitable[None] | None]

DEFAULT_AUTO_RETRY_DELAY_SECONDS = 1.0

_AUTO_RETRY = frozenset(
    {RecoveryStrategy.RETRY_WITH_BACKOFF, RecoveryStrategy.AUTO_RETRY_WITH_DELAY}
)
_MANUAL_RETRY = frozenset(
    {
        RecoveryStrategy.MANUAL_RETRY,
        RecoveryStrategy.ROLLBACK_AND_RETRY,
        RecoveryStrategy.SESSION_REPAIR,
    }
)


@dataclass(frozen=True)
class RecoveryAction:
    label: str
    callback: RecoveryCallback
    is_primary: bool = False

    async def run(self) -> None:
        outcome = self.callback()
        if inspect.isawaitable(outcome):
            await outcome


@dataclass(frozen=True)
class RecoveryPlan:
    """Immutable command value describing how to recover from one error."""

    strategy: RecoveryStrategy
    actions: tuple[RecoveryAction, ...] = ()
    auto_retry: bool = False
    retry_delay_seconds: float | None = None
    message: str = ""

    @property
    def primary_action(self) -> RecoveryAction | None:
        for action in self.actions:
            if action.is_primary:
                return action
        return None


class RecoveryPlanBuilder:
    """Builds a `RecoveryPlan` from an error and the callbacks available at the call site.

    Callbacks that the error's strategy has no use for are ignored; a
    strategy whose callback was not supplied yields a plan without actions.
    """

    def __init__(self, error: ClientError) -> None:
        self._error = error
        self._retry: RecoveryCallback | None = None
        self._reauthenticate: RecoveryCallback | None = None
        self._clear_input: RecoveryCallback | None = None

    def on_retry(self, callback: RecoveryCallback) -> RecoveryPlanBuilder:
        self._retry = callback
        return self

    def on_reauthenticate(self, callback: RecoveryCallback) -> RecoveryPlanBuilder:
        self._reauthenticate = callback
        return self

    def on_clear_input(self, callback: RecoveryCallback) -> RecoveryPlanBuilder:
        self._clear_input = callback
        return self

    def build(self) -> RecoveryPlan:
        strategy = self._error.recovery
        actions: list[RecoveryAction] = []
        auto_retry = False
        retry_delay: float | None = None

        if strategy in _AUTO_RETRY:
            auto_retry = self._retry is not None
            retry_delay = self._error.retry_after_seconds or DEFAULT_AUTO_RETRY_DELAY_SECONDS
            if self._retry is not None:
                actions.append(RecoveryAction("Retry now", self._retry, is_primary=True))
        elif strategy in _MANUAL_RETRY:
            if self._retry is not None:
                actions.append(RecoveryAction("Retry", self._retry, is_primary=True))
        elif strategy is RecoveryStrategy.REAUTHENTICATE:
            if self._reauthenticate is not None:
                actions.append(RecoveryAction("Sign in", self._reauthenticate, is_primary=True))
        elif strategy is RecoveryStrategy.USER_FIX_REQUIRED:
            if self._clear_input is not None:
                actions.append(RecoveryAction("Clear input", self._clear_input))

        return RecoveryPlan(
            strategy=strategy,
            actions=tuple(actions),
            auto_retry=auto_retry,
            retry_delay_seconds=retry_delay,
            message=self._error.user_message,
        )
