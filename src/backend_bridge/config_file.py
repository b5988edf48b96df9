"""Typed parsing and validation for client config files.

Example file:
    schema_version = 1

    [client]
    api_url = "https://bridge.example.com"
    session_timeout_minutes = 240
    poll_max_total_wait_seconds = 120
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .exceptions import ConfigFileNotFoundError, ConfigFileParseError, ConfigFileValidationError

_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ClientConfigFile:
    """Validated client config values loaded from a TOML file."""

    api_url: str | None = None
    storage_path: str | None = None
    oauth_client_id: str | None = None
    session_timeout_minutes: int | None = None
    request_timeout_seconds: float | None = None
    poll_initial_delay_seconds: float | None = None
    poll_backoff_factor: float | None = None
    poll_max_delay_seconds: float | None = None
    poll_max_total_wait_seconds: float | None = None
    cache_ttl_seconds: float | None = None
    credential_refresh_threshold_seconds: float | None = None
    retry_max_attempts: int | None = None


class _ClientSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    api_url: str | None = None
    storage_path: str | None = None
    oauth_client_id: str | None = None
    session_timeout_minutes: int | None = None
    request_timeout_seconds: float | None = None
    poll_initial_delay_seconds: float | None = None
    poll_backoff_factor: float | None = None
    poll_max_delay_seconds: float | None = None
    poll_max_total_wait_seconds: float | None = None
    cache_ttl_seconds: float | None = None
    credential_refresh_threshold_seconds: float | None = None
    retry_max_attempts: int | None = None

    @field_validator("api_url")
    @classmethod
    def _validate_api_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        url = value.strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ValueError
        return url

    @field_validator("storage_path", "oauth_client_id")
    @classmethod
    def _validate_non_empty_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            raise ValueError
        return text

    @field_validator("session_timeout_minutes", "retry_max_attempts")
    @classmethod
    def _validate_positive_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 1:
            raise ValueError
        return value

    @field_validator(
        "request_timeout_seconds",
        "poll_initial_delay_seconds",
        "poll_max_delay_seconds",
        "poll_max_total_wait_seconds",
        "cache_ttl_seconds",
    )
    @classmethod
    def _validate_positive_seconds(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value <= 0.0:
            raise ValueError
        return value

    @field_validator("credential_refresh_threshold_seconds")
    @classmethod
    def _validate_non_negative_seconds(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value < 0.0:
            raise ValueError
        return value

    @field_validator("poll_backoff_factor")
    @classmethod
    def _validate_backoff_factor(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value < 1.0:
            raise ValueError
        return value


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    client: _ClientSectionModel

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_client_config_file(*, path: Path) -> ClientConfigFile:
    """Load and validate a client TOML config file."""
    if not path.exists():
        raise ConfigFileNotFoundError(str(path))

    raw_payload = path.read_text(encoding="utf-8")
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), _format_validation_error(exc)) from exc

    section = model.client
    return ClientConfigFile(**section.model_dump())
