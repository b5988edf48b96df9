"""HTTP transport implementations for infrastructure.

Usage example:
    import httpx

    from backend_bridge.infrastructure.http import HttpxTransport
    from backend_bridge.types import ApiRequest

    async with httpx.AsyncClient(base_url="https://api.example.com") as client:
        transport = HttpxTransport(client=client)
        response = await transport.send(ApiRequest.get("/api/v1/cases"))
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import override

import httpx

from ..observability import get_logger
from ..protocols import HttpTransport
from ..types import ApiRequest, ApiResponse

logger = get_logger("backend_bridge.infrastructure.http")


def parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    """Parse a Retry-After header (seconds or HTTP date) into seconds."""
    if not headers:
        return None
    value = headers.get("retry-after") or headers.get("Retry-After")
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    delta = (dt - datetime.now(UTC)).total_seconds()
    return max(0.0, delta)


def response_details(response: ApiResponse) -> str:
    """Return a compact status/body summary for error reporting."""
    body = " ".join(response.text().split())
    if len(body) > 300:
        body = body[:300] + "..."
    return f"status={response.status_code}, body={body}"


def build_http_client(*, base_url: str, timeout_seconds: float) -> httpx.AsyncClient:
    """Create the shared async client. Redirects are surfaced, not followed."""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout_seconds, connect=10.0),
        follow_redirects=False,
    )


class HttpxTransport(HttpTransport):
    """Performs requests with an `httpx.AsyncClient`.

    Transport failures (`httpx.TransportError` and subclasses) propagate
    unchanged; the gateway classifies them.
    """

    def __init__(self, *, client: httpx.AsyncClient) -> None:
        self.client = client

    @override
    async def send(self, request: ApiRequest) -> ApiResponse:
        logger.debug("%s %s", request.method, request.url)
        response = await self.client.request(
            request.method,
            request.url,
            headers=dict(request.headers),
            params=dict(request.params) if request.params else None,
            files=dict(request.files) if request.files is not None else None,
            content=request.content if request.files is None else None,
            json=request.json_body if not request.is_binary else None,
        )
        return ApiResponse(
            status_code=response.status_code,
            headers={name.lower(): value for name, value in response.headers.items()},
            body=response.content,
            url=str(response.url),
        )

    async def aclose(self) -> None:
        await self.client.aclose()
