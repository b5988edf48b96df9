"""Credential lifecycle with single-flight refresh.

Usage example:
    from backend_bridge.application.credentials import CredentialManager

    credentials = CredentialManager(
        storage=storage,
        transport=transport,
        clock=clock,
        oauth_client_id="backend-bridge",
    )
    token = await credentials.get_valid_credential()
"""

from __future__ import annotations

import asyncio
from typing import override

from ..domain.errors import ErrorContext, ErrorKind
from ..domain.sessions import Credential
from ..exceptions import AuthenticationError, ClientError
from ..io_validation import IncomingDataError, parse_token_response, validate_as
from ..observability import get_logger, short_id
from ..protocols import Clock, CredentialSource, HttpTransport, KeyValueStorage
from ..types import ApiRequest, StoredCredentials
from .classifier import ErrorClassifier

logger = get_logger("backend_bridge.application.credentials")

CREDENTIALS_KEY = "credentials"
TOKEN_PATH = "/auth/oauth/token"
DEFAULT_REFRESH_THRESHOLD_SECONDS = 300.0

# Statuses a token endpoint uses for a rejected grant rather than an outage.
_REJECTED_GRANT_KINDS = frozenset({ErrorKind.VALIDATION, ErrorKind.UNKNOWN})


class CredentialManager(CredentialSource):
    """Owns the persisted credential bundle.

    At most one refresh is in flight at any time: concurrent callers that
    find the access token due for refresh all await the same task and observe
    the same token or the same error.
    """

    def __init__(
        self,
        *,
        storage: KeyValueStorage,
        transport: HttpTransport,
        clock: Clock,
        oauth_client_id: str,
        classifier: ErrorClassifier | None = None,
        refresh_threshold_seconds: float = DEFAULT_REFRESH_THRESHOLD_SECONDS,
    ) -> None:
        self.storage = storage
        self.transport = transport
        self.clock = clock
        self.oauth_client_id = oauth_client_id
        self.classifier = classifier or ErrorClassifier()
        self.refresh_threshold_seconds = refresh_threshold_seconds
        self._pending: asyncio.Task[Credential] | None = None

    @property
    def refresh_in_flight(self) -> bool:
        return self._pending is not None

    def load(self) -> Credential | None:
        raw = self.storage.get(CREDENTIALS_KEY)
        if raw is None:
            return None
        try:
            stored = validate_as(StoredCredentials, raw)
        except IncomingDataError:
            logger.warning("Discarding unreadable stored credentials")
            self.clear()
            return None
        return Credential(
            access_token=stored["access_token"],
            token_type=stored["token_type"],
            expires_at=stored["expires_at"],
            refresh_token=stored["refresh_token"],
            refresh_expires_at=stored["refresh_expires_at"],
        )

    @override
    async def get_valid_credential(self) -> str | None:
        credential = self.load()
        if credential is None:
            logger.debug("No credentials stored")
            return None
        now = self.clock.now()
        if credential.remaining_validity(now) > self.refresh_threshold_seconds:
            return credential.access_token
        if credential.refresh_expired(now):
            logger.warning("Refresh token expired; sign-in required")
            self.clear()
            return None
        refreshed = await self._refresh(credential)
        return refreshed.access_token

    async def _refresh(self, credential: Credential) -> Credential:
        if self._pending is None:
            logger.info("Access token expiring; refreshing")
            self._pending = asyncio.ensure_future(self._refresh_once(credential))
        else:
            logger.debug("Refresh already in flight; joining it")
        # Shielded so one cancelled caller does not cancel the shared refresh.
        return await asyncio.shield(self._pending)

    async def _refresh_once(self, credential: Credential) -> Credential:
        try:
            return await self._perform_refresh(credential)
        finally:
            self._pending = None

    async def _perform_refresh(self, credential: Credential) -> Credential:
        context = ErrorContext(operation="refresh_credentials")
        request = ApiRequest.post(
            TOKEN_PATH,
            {
                "grant_type": "refresh_token",
                "refresh_token": credential.refresh_token,
                "client_id": self.oauth_client_id,
            },
        )
        try:
            response = await self.transport.send(request)
            if not response.ok:
                raise self._refresh_rejected(self.classifier.from_response(response, context))
            refreshed = parse_token_response(response.json(), now=self.clock.now())
        except Exception as exc:
            self.clear()
            error = self.classifier.classify(exc, context)
            logger.error("Credential refresh failed: %s", error)
            if error is exc:
                raise
            raise error from exc
        self._store(refreshed)
        logger.info("Credentials refreshed (token %s)", short_id(refreshed.access_token))
        return refreshed

    @staticmethod
    def _refresh_rejected(error: ClientError) -> ClientError:
        if error.kind not in _REJECTED_GRANT_KINDS:
            return error
        return AuthenticationError(
            "Refresh token was rejected",
            status=error.status,
            detail=error.detail,
            context=error.context,
        )

    def _store(self, credential: Credential) -> None:
        self.storage.set(CREDENTIALS_KEY, credential.to_storage())

    def store_tokens(self, token_response: object) -> Credential:
        """Persist a token grant obtained by the sign-in flow."""
        credential = parse_token_response(token_response, now=self.clock.now())
        self._store(credential)
        logger.info("Credentials stored (token %s)", short_id(credential.access_token))
        return credential

    @override
    def clear(self) -> None:
        self.storage.remove(CREDENTIALS_KEY)
        logger.info("Credentials cleared")

    def is_authenticated(self) -> bool:
        credential = self.load()
        return credential is not None and not credential.refresh_expired(self.clock.now())
