"""Client identity and backend session lifecycle.

The client identity is a random UUID persisted once and sent with every
session request so the backend can resume the same session after a restart.
It is only discarded by explicit recovery.

Usage example:
    from backend_bridge.application.sessions import SessionManager

    sessions = SessionManager(
        storage=storage, transport=transport, credentials=credentials, clock=clock
    )
    session = await sessions.create_session_with_recovery()
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import UTC

from ..domain.errors import ErrorContext, is_session_invalid
from ..domain.sessions import DEFAULT_SESSION_TIMEOUT_MINUTES, Session, clamp_session_timeout
from ..exceptions import ClientError
from ..io_contracts import SessionCreateRequestIO
from ..io_validation import parse_session_response
from ..observability import get_logger, short_id
from ..protocols import Clock, CredentialSource, HttpTransport, KeyValueStorage
from ..types import ApiRequest, ApiResponse
from .classifier import ErrorClassifier

logger = get_logger("backend_bridge.application.sessions")

CLIENT_ID_KEY = "client_id"
SESSION_ID_KEY = "session_id"
SESSION_CREATED_AT_KEY = "session_created_at"
SESSION_RESUMED_KEY = "session_resumed"
SESSIONS_PATH = "/api/v1/sessions"
SESSION_TYPE = "troubleshooting"


class SessionManager:
    """Creates, resumes and forgets backend sessions for this client identity."""

    def __init__(
        self,
        *,
        storage: KeyValueStorage,
        transport: HttpTransport,
        credentials: CredentialSource,
        clock: Clock,
        classifier: ErrorClassifier | None = None,
        default_timeout_minutes: int = DEFAULT_SESSION_TIMEOUT_MINUTES,
    ) -> None:
        self.storage = storage
        self.transport = transport
        self.credentials = credentials
        self.clock = clock
        self.classifier = classifier or ErrorClassifier()
        self.default_timeout_minutes = default_timeout_minutes

    def get_or_create_client_identity(self) -> str:
        client_id = self.get_current_client_identity()
        if client_id is not None:
            logger.info("Using existing client id %s", short_id(client_id))
            return client_id
        client_id = str(uuid.uuid4())
        self.storage.set(CLIENT_ID_KEY, client_id)
        logger.info("Generated new client id %s", short_id(client_id))
        return client_id

    def get_current_client_identity(self) -> str | None:
        stored = self.storage.get(CLIENT_ID_KEY)
        if isinstance(stored, str) and stored:
            return stored
        return None

    def clear_client_identity(self) -> None:
        self.storage.remove(CLIENT_ID_KEY)
        logger.info("Client id cleared; the next session will be new")

    def current_session_id(self) -> str | None:
        stored = self.storage.get(SESSION_ID_KEY)
        if isinstance(stored, str) and stored:
            return stored
        return None

    def clear_session(self) -> None:
        self.storage.remove(SESSION_ID_KEY, SESSION_CREATED_AT_KEY, SESSION_RESUMED_KEY)
        logger.info("Stored session cleared")

    async def create_or_resume_session(
        self,
        context: Mapping[str, object] | None = None,
        timeout_minutes: int | None = None,
    ) -> Session:
        """Ask the backend for a session bound to this client identity.

        A resumed session and a newly created one are both success.

        Raises:
            ClientError: The backend refused or could not be reached.
        """
        client_id = self.get_or_create_client_identity()
        if timeout_minutes is None:
            timeout_minutes = self.default_timeout_minutes
        timeout = clamp_session_timeout(timeout_minutes)
        body: SessionCreateRequestIO = {
            "client_id": client_id,
            "session_type": SESSION_TYPE,
            "timeout_minutes": timeout,
        }
        if context:
            body["metadata"] = dict(context)

        error_context = ErrorContext(operation="create_session", resource_id=client_id)
        response = await self._send(ApiRequest.post(SESSIONS_PATH, body), error_context)
        if not response.ok:
            raise self.classifier.from_response(response, error_context)
        try:
            session = parse_session_response(
                response.json(),
                client_id=client_id,
                timeout_minutes=timeout,
                now=self.clock.now(),
            )
        except ValueError as exc:
            raise self.classifier.classify(exc, error_context) from exc

        self._store(session)
        if session.resumed:
            logger.info("Session resumed: %s (timeout %d min)", session.session_id, timeout)
        else:
            logger.info("New session created: %s (timeout %d min)", session.session_id, timeout)
        return session

    async def create_session_with_recovery(
        self,
        context: Mapping[str, object] | None = None,
        timeout_minutes: int | None = None,
    ) -> Session:
        """Create or resume a session, starting afresh once if the old one is gone."""
        try:
            return await self.create_or_resume_session(context, timeout_minutes)
        except ClientError as exc:
            if not is_session_invalid(exc.kind, exc.status, exc.detail):
                raise
            logger.warning("Resumable session is invalid (%s); starting a fresh one", exc)
            self.clear_client_identity()
        return await self.create_or_resume_session(context, timeout_minutes)

    async def delete_session(self, session_id: str | None = None) -> bool:
        """Delete a session on the backend. Best effort: failures are logged."""
        target = session_id or self.current_session_id()
        if target is None:
            return False
        if target == self.current_session_id():
            self.clear_session()
        error_context = ErrorContext(operation="delete_session", resource_id=target)
        try:
            response = await self._send(
                ApiRequest(method="DELETE", url=f"{SESSIONS_PATH}/{target}"), error_context
            )
        except ClientError as exc:
            logger.warning("Session delete failed: %s", exc)
            return False
        if not response.ok:
            logger.warning("Session delete answered %d for %s", response.status_code, target)
            return False
        logger.info("Session deleted: %s", target)
        return True

    async def _send(self, request: ApiRequest, context: ErrorContext) -> ApiResponse:
        headers = {"Content-Type": "application/json"}
        token = await self.credentials.get_valid_credential()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return await self.transport.send(request.with_headers(headers))
        except Exception as exc:
            raise self.classifier.classify(exc, context) from exc

    def _store(self, session: Session) -> None:
        self.storage.set(SESSION_ID_KEY, session.session_id)
        self.storage.set(SESSION_CREATED_AT_KEY, session.created_at.astimezone(UTC).isoformat())
        self.storage.set(SESSION_RESUMED_KEY, session.resumed)
