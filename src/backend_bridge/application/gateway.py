"""Authenticated request gateway with transparent session repair.

Usage example:
    from backend_bridge.application.gateway import RequestGateway
    from backend_bridge.types import ApiRequest

    gateway = RequestGateway(transport=transport, credentials=credentials, sessions=sessions)
    cases = await gateway.send_json(ApiRequest.get("/api/v1/cases"))
"""

from __future__ import annotations

from ..domain.errors import ErrorContext, is_session_expiry_signal
from ..exceptions import AuthenticationError, SessionExpiredError
from ..io_validation import error_detail
from ..observability import get_logger
from ..protocols import CredentialSource, HttpTransport
from ..types import ApiRequest, ApiResponse
from .classifier import ErrorClassifier
from .sessions import SessionManager

logger = get_logger("backend_bridge.application.gateway")

SESSION_HEADER = "X-Session-Id"


class RequestGateway:
    """Sends requests with auth and session headers and normalises failures.

    A 401 that reports an expired session triggers one session repair and
    exactly one replay of the original request. Every other failure is
    raised as a `ClientError`.
    """

    def __init__(
        self,
        *,
        transport: HttpTransport,
        credentials: CredentialSource,
        sessions: SessionManager,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self.transport = transport
        self.credentials = credentials
        self.sessions = sessions
        self.classifier = classifier or ErrorClassifier()

    async def build_headers(self, request: ApiRequest) -> dict[str, str]:
        headers: dict[str, str] = {}
        if not request.is_binary:
            headers["Content-Type"] = "application/json"
        token = await self.credentials.get_valid_credential()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        session_id = self.sessions.current_session_id()
        if session_id:
            headers[SESSION_HEADER] = session_id
        return headers

    async def send(self, request: ApiRequest, context: ErrorContext | None = None) -> ApiResponse:
        """Send `request`; 2xx and 3xx responses are returned to the caller.

        Raises:
            SessionExpiredError: The session expired again after one repair.
            AuthenticationError: Credentials were rejected (they are cleared).
            ClientError: Any other failure, classified.
        """
        context = context or ErrorContext(operation=f"{request.method} {request.url}")
        response = await self._send_once(request, context)
        if not self._is_session_expiry(response):
            return self._checked(response, context)

        logger.info("Session expired; obtaining a fresh session and replaying once")
        self.sessions.clear_session()
        await self.sessions.create_session_with_recovery()
        replayed = await self._send_once(request, context)
        if self._is_session_expiry(replayed):
            self.sessions.clear_session()
            raise SessionExpiredError(
                "Session expired again after repair",
                status=replayed.status_code,
                detail=error_detail(replayed.json_object()),
                context=context,
            )
        return self._checked(replayed, context)

    async def send_json(
        self, request: ApiRequest, context: ErrorContext | None = None
    ) -> object | None:
        response = await self.send(request, context)
        return response.json()

    async def _send_once(self, request: ApiRequest, context: ErrorContext) -> ApiResponse:
        prepared = request.with_headers(await self.build_headers(request))
        try:
            return await self.transport.send(prepared)
        except Exception as exc:
            error = self.classifier.classify(exc, context)
            logger.warning("No response for %s %s: %s", request.method, request.url, error)
            raise error from exc

    @staticmethod
    def _is_session_expiry(response: ApiResponse) -> bool:
        return response.status_code == 401 and is_session_expiry_signal(response.json_object())

    def _checked(self, response: ApiResponse, context: ErrorContext) -> ApiResponse:
        if response.status_code == 401:
            self.credentials.clear()
            raise AuthenticationError(
                "Authentication required",
                status=401,
                detail=error_detail(response.json_object()),
                context=context,
            )
        if response.ok or response.is_redirect:
            return response
        raise self.classifier.from_response(response, context)
