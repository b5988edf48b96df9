"""Tests for ClientConfig behaviour."""

from pathlib import Path

import pytest

import backend_bridge.config as config_module
from backend_bridge.config import (
    DEFAULT_API_URL,
    ClientConfig,
    PositiveIntegerEnvVarError,
    PositiveNumberEnvVarError,
)


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    def fake_load_dotenv(dotenv_path: str | None = None) -> bool:
        _ = dotenv_path
        return True

    monkeypatch.setattr(config_module, "load_dotenv", fake_load_dotenv)
    for name in list(config_module.os.environ):
        if name.startswith("BRIDGE_"):
            monkeypatch.delenv(name)
    return monkeypatch


def test_defaults() -> None:
    config = ClientConfig()

    assert config.api_url == DEFAULT_API_URL
    assert config.session_timeout_minutes == 180
    assert config.cache_ttl_seconds == 300.0
    assert config.credential_refresh_threshold_seconds == 300.0
    assert config.retry_max_attempts == 3


def test_from_env_uses_defaults_when_unset(isolated_env: pytest.MonkeyPatch) -> None:
    assert ClientConfig.from_env() == ClientConfig()


def test_from_env_reads_bridge_variables(isolated_env: pytest.MonkeyPatch) -> None:
    isolated_env.setenv("BRIDGE_API_URL", " https://bridge.example.com/ ")
    isolated_env.setenv("BRIDGE_SESSION_TIMEOUT_MINUTES", "240")
    isolated_env.setenv("BRIDGE_POLL_MAX_TOTAL_WAIT_SECONDS", "90")
    isolated_env.setenv("BRIDGE_OAUTH_CLIENT_ID", "desk-client")
    isolated_env.setenv("BRIDGE_STORAGE_PATH", "/tmp/bridge.json")

    config = ClientConfig.from_env()

    assert config.api_url == "https://bridge.example.com"
    assert config.session_timeout_minutes == 240
    assert config.poll_max_total_wait_seconds == 90.0
    assert config.oauth_client_id == "desk-client"
    assert config.storage_path == "/tmp/bridge.json"


@pytest.mark.parametrize("value", ["zero", "0", "-3"])
def test_from_env_rejects_non_positive_integers(
    isolated_env: pytest.MonkeyPatch, value: str
) -> None:
    isolated_env.setenv("BRIDGE_RETRY_MAX_ATTEMPTS", value)

    with pytest.raises(PositiveIntegerEnvVarError) as exc_info:
        ClientConfig.from_env()

    assert "BRIDGE_RETRY_MAX_ATTEMPTS" in str(exc_info.value)


def test_from_env_rejects_non_positive_numbers(isolated_env: pytest.MonkeyPatch) -> None:
    isolated_env.setenv("BRIDGE_CACHE_TTL_SECONDS", "-1")

    with pytest.raises(PositiveNumberEnvVarError):
        ClientConfig.from_env()


def test_with_overrides_preserves_other_fields() -> None:
    base = ClientConfig(oauth_client_id="desk-client", retry_max_attempts=5)

    updated = base.with_overrides(api_url="https://other.test/", session_timeout_minutes=60)

    assert updated.api_url == "https://other.test"
    assert updated.session_timeout_minutes == 60
    assert updated.oauth_client_id == "desk-client"
    assert updated.retry_max_attempts == 5
    assert updated.storage_path == base.storage_path


def test_effective_session_timeout_is_clamped() -> None:
    assert ClientConfig(session_timeout_minutes=5).effective_session_timeout_minutes == 60
    assert ClientConfig(session_timeout_minutes=1000).effective_session_timeout_minutes == 480


def test_resolved_storage_path_expands_home(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", "/home/tester")

    path = ClientConfig(storage_path="~/bridge/state.json").resolved_storage_path

    assert path == Path("/home/tester/bridge/state.json")


def test_poll_schedule_reflects_poll_settings() -> None:
    schedule = ClientConfig(poll_max_delay_seconds=4.0, poll_backoff_factor=2.0).poll_schedule()

    assert schedule.initial_delay_seconds == 1.5
    assert schedule.backoff_factor == 2.0
    assert schedule.max_delay_seconds == 4.0
    assert schedule.max_total_wait_seconds == 300.0
