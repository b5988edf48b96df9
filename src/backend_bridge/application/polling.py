"""Driver for the operation completion state machine.

The transitions in `domain.operations` are pure; this module performs the
requests and all waiting, through the injected clock, so tests can run the
full five-minute budget instantly.

Usage example:
    from backend_bridge.application.polling import AsyncOperationPoller
    from backend_bridge.types import ApiRequest

    poller = AsyncOperationPoller(gateway=gateway, clock=clock)
    answer = await poller.submit(ApiRequest.post("/api/v1/cases/c1/queries", {"query": "why?"}))
"""

from __future__ import annotations

from collections.abc import Mapping

from ..domain import operations
from ..domain.errors import ErrorContext, ErrorKind
from ..domain.operations import AsyncOperation, Failed, OperationState, PollOutcome, PollSchedule
from ..exceptions import ClientError, OperationFailedError, OperationTimedOutError
from ..io_validation import OperationResponseDecoder
from ..observability import get_logger
from ..protocols import Clock
from ..types import ApiRequest
from .gateway import RequestGateway

logger = get_logger("backend_bridge.application.polling")

# Credential and session problems need the caller, not a FAILED operation.
_PROPAGATED_ON_FINAL_FETCH = frozenset({ErrorKind.AUTHENTICATION, ErrorKind.SESSION_EXPIRED})


class AsyncOperationPoller:
    """Turns sync and deferred backend completion into one awaitable result."""

    def __init__(
        self,
        *,
        gateway: RequestGateway,
        clock: Clock,
        schedule: PollSchedule | None = None,
        decoder: OperationResponseDecoder | None = None,
    ) -> None:
        self.gateway = gateway
        self.clock = clock
        self.schedule = schedule or PollSchedule()
        self.decoder = decoder or OperationResponseDecoder()

    async def run(
        self,
        request: ApiRequest,
        *,
        name: str | None = None,
        context: ErrorContext | None = None,
    ) -> AsyncOperation:
        """Submit `request` and drive it to a terminal state.

        Raises:
            ClientError: The submission failed, or a poll or the final fetch
                failed without a 5xx answer. Server errors while polling and
                HTTP failures of the final fetch end the operation FAILED.
        """
        op = operations.start(name or f"{request.method} {request.url}", self.schedule)
        response = await self.gateway.send(request, context)
        op = operations.on_submission(op, response.status_code, self.decoder.decode(response))
        logger.debug("%s submitted: %s", op.name, op.state)

        started = self.clock.now()
        while op.is_polling:
            location = op.location
            if location is None:
                break
            op = operations.on_poll(op, await self._poll(location, context))
            if not op.is_polling:
                break
            await self.clock.sleep(op.delay_seconds)
            op = operations.on_wait(op, self.clock.now() - started, self.schedule)

        if op.state is OperationState.REDIRECTED and op.location is not None:
            logger.debug("%s redirected to %s", op.name, op.location)
            op = operations.on_final_fetch(op, await self._fetch_final(op.location, context))

        self._log_outcome(op)
        return op

    async def submit(
        self,
        request: ApiRequest,
        *,
        name: str | None = None,
        context: ErrorContext | None = None,
    ) -> Mapping[str, object]:
        """Return the final payload, or raise if the operation did not succeed."""
        op = await self.run(request, name=name, context=context)
        if op.succeeded and op.result is not None:
            return op.result
        if op.state is OperationState.TIMED_OUT:
            raise OperationTimedOutError(op, context=context)
        raise OperationFailedError(op, context=context)

    async def _poll(self, location: str, context: ErrorContext | None) -> PollOutcome:
        try:
            response = await self.gateway.send(ApiRequest.get(location), context)
        except ClientError as exc:
            if exc.status is None or exc.status < 500:
                raise
            return Failed(f"Server error while polling job ({exc.status})", status_code=exc.status)
        return self.decoder.decode(response)

    async def _fetch_final(self, location: str, context: ErrorContext | None) -> PollOutcome:
        try:
            response = await self.gateway.send(ApiRequest.get(location), context)
        except ClientError as exc:
            if exc.status is None or exc.kind in _PROPAGATED_ON_FINAL_FETCH:
                raise
            reason = exc.detail or f"status {exc.status}"
            return Failed(f"Final result fetch failed: {reason}", status_code=exc.status)
        return self.decoder.decode_final(response)

    @staticmethod
    def _log_outcome(op: AsyncOperation) -> None:
        if op.succeeded:
            logger.info("%s completed (%s, %d polls)", op.name, op.state, op.polls)
        elif op.state is OperationState.TIMED_OUT:
            logger.warning(
                "%s timed out after %.1fs (%d polls)", op.name, op.elapsed_seconds, op.polls
            )
        else:
            logger.warning("%s failed: %s", op.name, op.error)
