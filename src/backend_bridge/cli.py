"""CLI for backend_bridge.

Commands:
- login: Store a token grant obtained from the sign-in flow
- session: Create or resume the backend session for this client
- cases: List cases (served from the local cache while fresh)
- ask: Submit a query to a case and wait for the answer
- logout: End the session and forget credentials
- config: Show the effective configuration
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Annotated, Any, Protocol

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from . import __version__
from .application.cases import CaseService
from .application.credentials import CredentialManager
from .application.resilient_operation import run_resilient
from .application.sessions import SessionManager
from .config import ClientConfig
from .config_file import load_client_config_file
from .domain.errors import ErrorContext
from .exceptions import ClientError, ConfigFileError
from .io_validation import IncomingDataError
from .observability import set_level
from .protocols import Clock, RetryPolicy


@dataclass(frozen=True)
class CliDependencies:
    """Concrete services required by the CLI."""

    credentials: CredentialManager
    sessions: SessionManager
    cases: CaseService
    clock: Clock
    retry_policy: RetryPolicy
    close: Callable[[], Awaitable[None]]


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(self, *, config: ClientConfig) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: ClientConfig
    deps_builder: DependenciesBuilder

    def build_dependencies(self) -> CliDependencies:
        return self.deps_builder(config=self.config)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the backend-bridge entry point.")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _version_callback(value: bool) -> None:
    if value:
        rprint(f"backend-bridge {__version__}")
        raise typer.Exit()


def _run[T](
    state: CliContext, command: Callable[[CliDependencies], Coroutine[Any, Any, T]]
) -> T:
    """Run one async command against freshly built services, reporting classified errors."""

    async def _invoke() -> T:
        deps = state.build_dependencies()
        try:
            return await command(deps)
        finally:
            await deps.close()

    try:
        return asyncio.run(_invoke())
    except ClientError as exc:
        rprint(f"[red]✗ {exc.user_message}[/red]")
        rprint(f"  Kind: {exc.kind} · Recovery: {exc.recovery}")
        raise typer.Exit(code=1) from exc


def create_app(deps_builder: DependenciesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder."""
    app = typer.Typer(
        add_completion=False,
        help="Resilient client for the troubleshooting backend: sessions, cases and queries.",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="TOML config file ([client] section)"),
        ] = None,
        api_url: Annotated[
            str | None,
            typer.Option("--api-url", help="Backend base URL (overrides BRIDGE_API_URL)"),
        ] = None,
        verbose: Annotated[
            bool,
            typer.Option("--verbose", "-v", help="Log requests and state changes at DEBUG"),
        ] = False,
        version: Annotated[
            bool,
            typer.Option(
                "--version", callback=_version_callback, is_eager=True, help="Show version"
            ),
        ] = False,
    ) -> None:
        """Initialise CLI context."""
        _ = version
        if verbose:
            set_level(logging.DEBUG)
        config = ClientConfig.from_env()
        if config_path is not None:
            try:
                config = config.with_file_overrides(load_client_config_file(path=config_path))
            except ConfigFileError as exc:
                raise typer.BadParameter(str(exc), param_hint="--config") from exc
        ctx.obj = CliContext(
            config=config.with_overrides(api_url=api_url), deps_builder=deps_builder
        )

    @app.command()
    def login(
        ctx: typer.Context,
        token_file: Annotated[
            Path,
            typer.Argument(help="JSON token grant (access_token, expires_in, refresh_token, ...)"),
        ],
    ) -> None:
        """Store credentials from a token grant produced by the sign-in flow."""
        state = _get_context(ctx)
        try:
            grant: object = json.loads(token_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise typer.BadParameter(str(exc), param_hint="TOKEN_FILE") from exc

        async def _login(deps: CliDependencies) -> None:
            try:
                deps.credentials.store_tokens(grant)
            except IncomingDataError as exc:
                raise typer.BadParameter(str(exc), param_hint="TOKEN_FILE") from exc

        _run(state, _login)
        rprint("[green]✓ Credentials stored[/green]")

    @app.command()
    def session(
        ctx: typer.Context,
        timeout_minutes: Annotated[
            int | None,
            typer.Option("--timeout", "-t", help="Session timeout in minutes (60-480)"),
        ] = None,
    ) -> None:
        """Create or resume the backend session for this client."""
        state = _get_context(ctx)
        result = _run(
            state,
            lambda deps: deps.sessions.create_session_with_recovery(
                timeout_minutes=timeout_minutes
            ),
        )
        verb = "Resumed" if result.resumed else "Created"
        rprint(f"[green]✓ {verb} session:[/green] {result.session_id}")
        rprint(f"  Expires: {result.expires_at.isoformat()}")

    @app.command()
    def cases(
        ctx: typer.Context,
        refresh: Annotated[
            bool,
            typer.Option("--refresh", help="Bypass the local cache"),
        ] = False,
    ) -> None:
        """List cases."""
        state = _get_context(ctx)
        items = _run(
            state,
            lambda deps: run_resilient(
                lambda: deps.cases.list_cases(force_refresh=refresh),
                clock=deps.clock,
                policy=deps.retry_policy,
                context=ErrorContext(operation="list_cases"),
            ),
        )
        if not items:
            rprint("[yellow]No cases[/yellow]")
            return
        table = Table("Case", "Title", "Status")
        for item in items:
            table.add_row(
                str(item.get("case_id", "")),
                str(item.get("title", "")),
                str(item.get("status", "")),
            )
        Console().print(table)

    @app.command()
    def ask(
        ctx: typer.Context,
        case_id: Annotated[str, typer.Argument(help="Case to query")],
        query: Annotated[str, typer.Argument(help="Question for the backend")],
        attachment: Annotated[
            list[str] | None,
            typer.Option("--attachment", "-a", help="Uploaded file id (repeatable)"),
        ] = None,
    ) -> None:
        """Submit a query and wait for the answer."""
        state = _get_context(ctx)
        answer = _run(
            state,
            lambda deps: deps.cases.submit_query(case_id, query, tuple(attachment or ())),
        )
        rprint(f"[bold]{answer.get('response_type', 'ANSWER')}[/bold]")
        rprint(str(answer.get("content", "")))

    @app.command()
    def logout(ctx: typer.Context) -> None:
        """End the backend session (best effort) and forget credentials."""
        state = _get_context(ctx)

        async def _logout(deps: CliDependencies) -> bool:
            deleted = await deps.sessions.delete_session()
            deps.sessions.clear_session()
            deps.credentials.clear()
            return deleted

        deleted = _run(state, _logout)
        if not deleted:
            rprint("[yellow]Session was not deleted on the backend[/yellow]")
        rprint("[green]✓ Signed out[/green]")

    @app.command(name="config")
    def show_config(ctx: typer.Context) -> None:
        """Show the effective configuration."""
        state = _get_context(ctx)
        table = Table("Setting", "Value")
        for name, value in asdict(state.config).items():
            table.add_row(name, str(value))
        Console().print(table)

    _ = (main, login, session, cases, ask, logout, show_config)

    return app
