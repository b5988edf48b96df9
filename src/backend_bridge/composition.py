"""Composition root for wiring services and CLI dependencies."""

from __future__ import annotations

from dataclasses import dataclass

from .application.cases import CaseService
from .application.classifier import ErrorClassifier
from .application.credentials import CredentialManager
from .application.gateway import RequestGateway
from .application.polling import AsyncOperationPoller
from .application.sessions import SessionManager
from .cli import CliDependencies, create_app
from .config import ClientConfig
from .infrastructure import (
    HttpxTransport,
    JsonFileStorage,
    ReadThroughCache,
    RetryPolicy,
    SystemClock,
    build_http_client,
)
from .protocols import Clock, HttpTransport, KeyValueStorage


@dataclass(frozen=True)
class BridgeServices:
    """Every service, sharing one storage, transport, clock and classifier."""

    credentials: CredentialManager
    sessions: SessionManager
    gateway: RequestGateway
    poller: AsyncOperationPoller
    cache: ReadThroughCache
    cases: CaseService
    retry_policy: RetryPolicy


def wire_services(
    *,
    config: ClientConfig,
    storage: KeyValueStorage,
    transport: HttpTransport,
    clock: Clock,
) -> BridgeServices:
    """Wire the request-orchestration services over the given collaborators."""
    classifier = ErrorClassifier()
    credentials = CredentialManager(
        storage=storage,
        transport=transport,
        clock=clock,
        oauth_client_id=config.oauth_client_id,
        classifier=classifier,
        refresh_threshold_seconds=config.credential_refresh_threshold_seconds,
    )
    sessions = SessionManager(
        storage=storage,
        transport=transport,
        credentials=credentials,
        clock=clock,
        classifier=classifier,
        default_timeout_minutes=config.effective_session_timeout_minutes,
    )
    gateway = RequestGateway(
        transport=transport,
        credentials=credentials,
        sessions=sessions,
        classifier=classifier,
    )
    poller = AsyncOperationPoller(gateway=gateway, clock=clock, schedule=config.poll_schedule())
    cache = ReadThroughCache(storage=storage, clock=clock, ttl_seconds=config.cache_ttl_seconds)
    return BridgeServices(
        credentials=credentials,
        sessions=sessions,
        gateway=gateway,
        poller=poller,
        cache=cache,
        cases=CaseService(gateway=gateway, poller=poller, cache=cache),
        retry_policy=RetryPolicy(
            max_attempts=config.retry_max_attempts,
            initial_delay_seconds=config.retry_initial_delay_seconds,
            backoff_multiplier=config.retry_backoff_multiplier,
            max_backoff_seconds=config.retry_max_backoff_seconds,
        ),
    )


def build_cli_dependencies(*, config: ClientConfig) -> CliDependencies:
    """Build concrete dependencies for CLI commands.

    Args:
        config: Client configuration (backend URL, storage path, timings).
    """
    clock = SystemClock()
    transport = HttpxTransport(
        client=build_http_client(
            base_url=config.api_url, timeout_seconds=config.request_timeout_seconds
        )
    )
    services = wire_services(
        config=config,
        storage=JsonFileStorage(config.resolved_storage_path),
        transport=transport,
        clock=clock,
    )
    return CliDependencies(
        credentials=services.credentials,
        sessions=services.sessions,
        cases=services.cases,
        clock=clock,
        retry_policy=services.retry_policy,
        close=transport.aclose,
    )


app = create_app(build_cli_dependencies)
