"""Transport-neutral request and response values used inside the client."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TypedDict


class StoredCredentials(TypedDict):
    """Credential bundle shape persisted under the `credentials` storage key."""

    access_token: str
    token_type: str
    expires_at: float
    refresh_token: str
    refresh_expires_at: float


class CachedCollection(TypedDict):
    """Cache blob shape persisted by the read-through cache."""

    items: list[dict[str, object]]
    timestamp: float


def _empty_headers() -> dict[str, str]:
    return {}


@dataclass(frozen=True)
class ApiRequest:
    """An HTTP request before authentication headers are attached.

    `url` may be absolute or relative to the configured API base URL.
    """

    method: str
    url: str
    json_body: object | None = None
    content: bytes | None = None
    files: Mapping[str, object] | None = None
    params: Mapping[str, str] | None = None
    headers: Mapping[str, str] = field(default_factory=_empty_headers)

    @property
    def is_binary(self) -> bool:
        return self.content is not None or self.files is not None

    def with_headers(self, headers: Mapping[str, str]) -> ApiRequest:
        return replace(self, headers={**headers, **self.headers})

    @classmethod
    def get(cls, url: str, *, params: Mapping[str, str] | None = None) -> ApiRequest:
        return cls(method="GET", url=url, params=params)

    @classmethod
    def post(cls, url: str, json_body: object | None = None) -> ApiRequest:
        return cls(method="POST", url=url, json_body=json_body)


@dataclass(frozen=True)
class ApiResponse:
    """A received HTTP response. Header names are stored lower-cased."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=_empty_headers)
    body: bytes = b""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400

    @property
    def location(self) -> str | None:
        return self.header("Location")

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def json(self) -> object | None:
        """Decode the body as JSON, returning None for empty or non-JSON bodies."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError:
            return None

    def json_object(self) -> dict[str, object]:
        """Decode the body as a JSON object, or an empty dict for anything else."""
        data = self.json()
        if isinstance(data, dict):
            return data
        return {}

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")
