"""Centralised, injectable configuration for backend_bridge."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Self

from dotenv import load_dotenv

from .config_file import ClientConfigFile
from .domain.operations import PollSchedule
from .domain.sessions import DEFAULT_SESSION_TIMEOUT_MINUTES, clamp_session_timeout

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_STORAGE_PATH = "~/.backend_bridge/state.json"
DEFAULT_OAUTH_CLIENT_ID = "backend-bridge"


class PositiveIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive integer.")


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a positive number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive number.")


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for the client services.

    Load from environment with `ClientConfig.from_env()` or construct directly for testing.
    """

    # Backend
    api_url: str = DEFAULT_API_URL
    oauth_client_id: str = DEFAULT_OAUTH_CLIENT_ID
    request_timeout_seconds: float = 30.0

    # Local state
    storage_path: str = DEFAULT_STORAGE_PATH
    cache_ttl_seconds: float = 300.0

    # Sessions and credentials
    session_timeout_minutes: int = DEFAULT_SESSION_TIMEOUT_MINUTES
    credential_refresh_threshold_seconds: float = 300.0

    # Deferred completion polling
    poll_initial_delay_seconds: float = 1.5
    poll_backoff_factor: float = 1.5
    poll_max_delay_seconds: float = 10.0
    poll_max_total_wait_seconds: float = 300.0

    # Retries
    retry_max_attempts: int = 3
    retry_initial_delay_seconds: float = 1.0
    retry_backoff_multiplier: float = 2.0
    retry_max_backoff_seconds: float = 30.0

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from `BRIDGE_*` environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.
        """
        load_dotenv(dotenv_path)

        return cls(
            api_url=_parse_url(os.getenv("BRIDGE_API_URL", "")) or DEFAULT_API_URL,
            oauth_client_id=os.getenv("BRIDGE_OAUTH_CLIENT_ID", "").strip()
            or DEFAULT_OAUTH_CLIENT_ID,
            request_timeout_seconds=_positive_float("BRIDGE_REQUEST_TIMEOUT_SECONDS", 30.0),
            storage_path=os.getenv("BRIDGE_STORAGE_PATH", "").strip() or DEFAULT_STORAGE_PATH,
            cache_ttl_seconds=_positive_float("BRIDGE_CACHE_TTL_SECONDS", 300.0),
            session_timeout_minutes=_positive_int(
                "BRIDGE_SESSION_TIMEOUT_MINUTES", DEFAULT_SESSION_TIMEOUT_MINUTES
            ),
            credential_refresh_threshold_seconds=_positive_float(
                "BRIDGE_CREDENTIAL_REFRESH_THRESHOLD_SECONDS", 300.0
            ),
            poll_initial_delay_seconds=_positive_float("BRIDGE_POLL_INITIAL_DELAY_SECONDS", 1.5),
            poll_backoff_factor=_positive_float("BRIDGE_POLL_BACKOFF_FACTOR", 1.5),
            poll_max_delay_seconds=_positive_float("BRIDGE_POLL_MAX_DELAY_SECONDS", 10.0),
            poll_max_total_wait_seconds=_positive_float(
                "BRIDGE_POLL_MAX_TOTAL_WAIT_SECONDS", 300.0
            ),
            retry_max_attempts=_positive_int("BRIDGE_RETRY_MAX_ATTEMPTS", 3),
            retry_initial_delay_seconds=_positive_float("BRIDGE_RETRY_INITIAL_DELAY_SECONDS", 1.0),
            retry_backoff_multiplier=_positive_float("BRIDGE_RETRY_BACKOFF_MULTIPLIER", 2.0),
            retry_max_backoff_seconds=_positive_float("BRIDGE_RETRY_MAX_BACKOFF_SECONDS", 30.0),
        )

    def with_overrides(
        self,
        *,
        api_url: str | None = None,
        storage_path: str | None = None,
        session_timeout_minutes: int | None = None,
        poll_max_total_wait_seconds: float | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            api_url=self.api_url if api_url is None else api_url.strip().rstrip("/"),
            storage_path=self.storage_path if storage_path is None else storage_path.strip(),
            session_timeout_minutes=self.session_timeout_minutes
            if session_timeout_minutes is None
            else session_timeout_minutes,
            poll_max_total_wait_seconds=self.poll_max_total_wait_seconds
            if poll_max_total_wait_seconds is None
            else poll_max_total_wait_seconds,
        )

    def with_file_overrides(self, file_config: ClientConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        changes = {
            item.name: getattr(file_config, item.name)
            for item in fields(file_config)
            if getattr(file_config, item.name) is not None
        }
        return replace(self, **changes)

    @property
    def effective_session_timeout_minutes(self) -> int:
        return clamp_session_timeout(self.session_timeout_minutes)

    @property
    def resolved_storage_path(self) -> Path:
        return Path(self.storage_path).expanduser()

    def poll_schedule(self) -> PollSchedule:
        return PollSchedule(
            initial_delay_seconds=self.poll_initial_delay_seconds,
            backoff_factor=self.poll_backoff_factor,
            max_delay_seconds=self.poll_max_delay_seconds,
            max_total_wait_seconds=self.poll_max_total_wait_seconds,
        )


def _parse_url(value: str) -> str:
    return value.strip().rstrip("/")


def _positive_int(env_name: str, default: int) -> int:
    text = os.getenv(env_name, "").strip()
    if not text:
        return default
    try:
        parsed = int(text)
    except ValueError as exc:
        raise PositiveIntegerEnvVarError(env_name) from exc
    if parsed < 1:
        raise PositiveIntegerEnvVarError(env_name)
    return parsed


def _positive_float(env_name: str, default: float) -> float:
    text = os.getenv(env_name, "").strip()
    if not text:
        return default
    try:
        parsed = float(text)
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if parsed <= 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed
