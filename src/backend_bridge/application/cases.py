"""Case API: cached listing, optimistic mutations and query submission.

Usage example:
    from backend_bridge.application.cases import CaseService

    service = CaseService(gateway=gateway, poller=poller, cache=cache)
    case = await service.create_case("Checkout latency")
    answer = await service.submit_query(str(case["case_id"]), "Why is p99 up?")
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from ..domain.errors import ErrorContext
from ..exceptions import (
    ClientError,
    OptimisticRollbackError,
    UnknownClientError,
    ValidationError,
)
from ..infrastructure.cache import ReadThroughCache
from ..io_validation import IncomingDataError, parse_case, parse_case_list
from ..observability import get_logger
from ..types import ApiRequest
from .gateway import RequestGateway
from .polling import AsyncOperationPoller

logger = get_logger("backend_bridge.application.cases")

CASES_PATH = "/api/v1/cases"


def case_path(case_id: str) -> str:
    return f"{CASES_PATH}/{case_id}"


class CaseService:
    def __init__(
        self,
        *,
        gateway: RequestGateway,
        poller: AsyncOperationPoller,
        cache: ReadThroughCache,
    ) -> None:
        self.gateway = gateway
        self.poller = poller
        self.cache = cache

    async def list_cases(self, *, force_refresh: bool = False) -> list[dict[str, object]]:
        """Return the user's cases, from the cache while it is fresh."""
        if not force_refresh:
            cached = self.cache.get()
            if cached is not None:
                return cached
        body = await self.gateway.send_json(
            ApiRequest.get(CASES_PATH), ErrorContext(operation="list_cases")
        )
        cases = parse_case_list(body)
        self.cache.set(cases)
        logger.info("Fetched %d cases", len(cases))
        return cases

    async def create_case(
        self, title: str | None = None, metadata: Mapping[str, object] | None = None
    ) -> dict[str, object]:
        """Create a case; the backend generates a title when none is given."""
        context = ErrorContext(operation="create_case")
        payload: dict[str, object] = {}
        if title:
            payload["title"] = title
        if metadata:
            payload["metadata"] = dict(metadata)
        body = await self.gateway.send_json(ApiRequest.post(CASES_PATH, payload), context)
        try:
            case = parse_case(body)
        except IncomingDataError as exc:
            raise UnknownClientError(
                "Backend response is missing case_id or title", detail=str(exc), context=context
            ) from exc
        self.cache.add_optimistic(case)
        logger.info("Created case %s", case["case_id"])
        return case

    async def rename_case(self, case_id: str, title: str) -> None:
        """Rename a case, updating the cached list before the backend confirms.

        Raises:
            OptimisticRollbackError: The backend rejected the change; the
                cache has been invalidated.
        """
        context = ErrorContext(operation="rename_case", resource_id=case_id)
        self.cache.patch_optimistic(case_id, {"title": title})
        request = ApiRequest(method="PUT", url=case_path(case_id), json_body={"title": title})
        try:
            await self.gateway.send(request, context)
        except ClientError as exc:
            self.cache.invalidate()
            logger.warning("Rename of %s rolled back: %s", case_id, exc)
            raise OptimisticRollbackError(
                "rename",
                f"Renaming case {case_id} failed",
                status=exc.status,
                detail=exc.detail,
                context=context,
            ) from exc

    async def delete_case(self, case_id: str) -> None:
        context = ErrorContext(operation="delete_case", resource_id=case_id)
        try:
            await self.gateway.send(ApiRequest(method="DELETE", url=case_path(case_id)), context)
        finally:
            self.cache.invalidate()
        logger.info("Deleted case %s", case_id)

    async def submit_query(
        self, case_id: str, query: str, attachments: Sequence[str] = ()
    ) -> Mapping[str, object]:
        """Submit a query and wait for the answer, however the backend completes it."""
        context = ErrorContext(operation="submit_query", resource_id=case_id)
        if not query.strip():
            raise ValidationError("Missing required field: query", context=context)
        body: dict[str, object] = {"message": query}
        if attachments:
            body["attachments"] = [{"file_id": file_id} for file_id in attachments]
        return await self.poller.submit(
            ApiRequest.post(f"{case_path(case_id)}/queries", body),
            name="submit_query",
            context=context,
        )
