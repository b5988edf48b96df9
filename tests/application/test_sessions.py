"""Tests for client identity and session lifecycle."""

import uuid

import httpx
import pytest

from backend_bridge.application.sessions import CLIENT_ID_KEY, SESSION_ID_KEY, SessionManager
from backend_bridge.exceptions import ServerError, UnknownClientError
from tests.fakes import (
    FakeClock,
    InMemoryStorage,
    ScriptedTransport,
    StaticCredentialSource,
    json_response,
)
from tests.support.backend import session_body

SESSIONS_PATH = "/api/v1/sessions"


def _manager(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> SessionManager:
    return SessionManager(
        storage=storage,
        transport=transport,
        credentials=StaticCredentialSource(),
        clock=clock,
    )


def test_client_identity_is_generated_once_and_persisted(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    manager = _manager(storage, transport, clock)
    assert manager.get_current_client_identity() is None

    first = manager.get_or_create_client_identity()
    second = manager.get_or_create_client_identity()

    assert first == second
    assert uuid.UUID(first).version == 4
    assert storage.get(CLIENT_ID_KEY) == first


async def test_create_session_sends_identity_and_persists_session(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    transport.add("POST", SESSIONS_PATH, json_response(201, session_body("s-1")))
    manager = _manager(storage, transport, clock)

    session = await manager.create_or_resume_session({"page": "dashboard"})

    [request] = transport.calls("POST", SESSIONS_PATH)
    assert request.json_body == {
        "client_id": manager.get_current_client_identity(),
        "session_type": "troubleshooting",
        "timeout_minutes": 180,
        "metadata": {"page": "dashboard"},
    }
    assert request.headers["Authorization"] == "Bearer access-token"
    assert session.session_id == "s-1"
    assert not session.resumed
    assert manager.current_session_id() == "s-1"
    assert storage.get("session_resumed") is False


@pytest.mark.parametrize(("requested", "sent"), [(0, 60), (30, 60), (600, 480), (120, 120)])
async def test_session_timeout_is_clamped(
    storage: InMemoryStorage,
    transport: ScriptedTransport,
    clock: FakeClock,
    requested: int,
    sent: int,
) -> None:
    transport.add("POST", SESSIONS_PATH, json_response(200, session_body()))

    await _manager(storage, transport, clock).create_or_resume_session(timeout_minutes=requested)

    [request] = transport.calls("POST", SESSIONS_PATH)
    assert isinstance(request.json_body, dict)
    assert request.json_body["timeout_minutes"] == sent


async def test_resumed_session_is_success(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    transport.add("POST", SESSIONS_PATH, json_response(200, session_body("s-old", resumed=True)))

    session = await _manager(storage, transport, clock).create_or_resume_session()

    assert session.resumed
    assert storage.get("session_resumed") is True


async def test_recovery_starts_fresh_identity_when_session_is_gone(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    transport.add(
        "POST",
        SESSIONS_PATH,
        json_response(404, {"detail": "Session not found"}),
        json_response(201, session_body("s-fresh")),
    )
    manager = _manager(storage, transport, clock)
    original_identity = manager.get_or_create_client_identity()

    session = await manager.create_session_with_recovery()

    first, second = transport.calls("POST", SESSIONS_PATH)
    assert isinstance(first.json_body, dict)
    assert isinstance(second.json_body, dict)
    assert first.json_body["client_id"] == original_identity
    assert second.json_body["client_id"] != original_identity
    assert session.session_id == "s-fresh"


async def test_recovery_retries_only_once(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    transport.add("POST", SESSIONS_PATH, json_response(410, {"detail": "Gone"}))

    with pytest.raises(UnknownClientError):
        await _manager(storage, transport, clock).create_session_with_recovery()

    assert len(transport.calls("POST", SESSIONS_PATH)) == 2


async def test_recovery_propagates_unrelated_failures(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    transport.add("POST", SESSIONS_PATH, json_response(500, {"detail": "database down"}))
    manager = _manager(storage, transport, clock)
    identity = manager.get_or_create_client_identity()

    with pytest.raises(ServerError) as exc_info:
        await manager.create_session_with_recovery()

    assert exc_info.value.detail == "database down"
    assert manager.get_current_client_identity() == identity
    assert len(transport.calls("POST", SESSIONS_PATH)) == 1


async def test_delete_session_is_best_effort(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    storage.set(SESSION_ID_KEY, "s-1")
    transport.add("DELETE", f"{SESSIONS_PATH}/s-1", httpx.ConnectError("refused"))
    manager = _manager(storage, transport, clock)

    assert await manager.delete_session() is False
    assert manager.current_session_id() is None


async def test_delete_session_success(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    transport.add("DELETE", f"{SESSIONS_PATH}/s-2", json_response(204))
    manager = _manager(storage, transport, clock)

    assert await manager.delete_session("s-2") is True
    assert await manager.delete_session() is False


def test_clear_client_identity(
    storage: InMemoryStorage, transport: ScriptedTransport, clock: FakeClock
) -> None:
    manager = _manager(storage, transport, clock)
    manager.get_or_create_client_identity()

    manager.clear_client_identity()

    assert manager.get_current_client_identity() is None
