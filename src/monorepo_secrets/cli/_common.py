"""Shared utilities for all CLI command modules.

Provides the Rich console, environment flag handling, manager
construction and outcome rendering used by every command.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import sys
from typing import Any, Awaitable, Callable, NoReturn, TypeVar

import click
from rich.console import Console
from rich.table import Table

from ..config import ConfigManager
from ..exceptions import MonorepoSecretsError
from ..manager import SecretSyncManager
from ..models import CleanupOutcome, Environment

console = Console()
logger = logging.getLogger("monorepo_secrets.cli")

T = TypeVar("T")


def fail(message: str) -> NoReturn:
    """Print an error line and exit with status 1."""
    console.print(f"[bold red]Error:[/] {message}")
    sys.exit(1)


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn package errors raised by a command into a clean exit."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except MonorepoSecretsError as exc:
            fail(str(exc))

    return wrapper


def environment_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the ``--stg`` / ``--prod`` / ``--override-sa`` flags."""
    func = click.option(
        "--override-sa",
        is_flag=True,
        help="Use Application Default Credentials instead of the service account file.",
    )(func)
    func = click.option("--prod", is_flag=True, help="Use the production environment.")(func)
    func = click.option("--stg", is_flag=True, help="Use the staging environment.")(func)
    return func


def resolve_environment(stg: bool, prod: bool) -> Environment:
    """Pick the environment from the mutually exclusive flags."""
    if stg and prod:
        raise click.UsageError("Cannot specify both --stg and --prod")
    if not stg and not prod:
        raise click.UsageError("Must specify either --stg or --prod")
    return Environment.STAGING if stg else Environment.PRODUCTION


def load_config(ctx: click.Context) -> ConfigManager:
    return ConfigManager(ctx.obj["config_path"])


def validate_service(config: ConfigManager, service: str) -> str:
    """Normalize a service argument and check it exists (or is ``all``)."""
    name = service.lower()
    config.resolve_services(name)
    return name


def build_manager(
    config: ConfigManager,
    environment: Environment,
    override_sa: bool,
) -> SecretSyncManager:
    return SecretSyncManager.for_environment(config, environment, override_sa=override_sa)


def run_with_manager(
    config: ConfigManager,
    environment: Environment,
    override_sa: bool,
    action: Callable[[SecretSyncManager], Awaitable[T]],
) -> T:
    """Build a manager, run one async action on it, and close it."""

    async def _run() -> T:
        manager = build_manager(config, environment, override_sa)
        try:
            return await action(manager)
        finally:
            await manager.close()

    return asyncio.run(_run())


def outcome_table(outcomes: list[CleanupOutcome]) -> Table:
    """Summarize cleanup outcomes, one row per secret."""
    table = Table(title="Version cleanup", show_lines=False)
    table.add_column("Secret", style="cyan")
    table.add_column("Live", justify="right")
    table.add_column("Marked", justify="right")
    table.add_column("Destroyed", justify="right", style="green")
    table.add_column("Failed", justify="right")
    table.add_column("Notes")

    for outcome in outcomes:
        notes = []
        if outcome.error:
            notes.append(f"[red]{outcome.error}[/]")
        if outcome.skipped:
            notes.append("[dim]policy disabled[/]")
        if outcome.floor_applied:
            notes.append("[yellow]kept newest version[/]")
        failed = f"[red]{outcome.failed}[/]" if outcome.failed else "0"
        table.add_row(
            outcome.secret_id,
            str(outcome.evaluated),
            str(len(outcome.marked)),
            str(outcome.destroyed),
            failed,
            "; ".join(notes),
        )
    return table


def print_failures(outcomes: list[CleanupOutcome]) -> None:
    for outcome in outcomes:
        for failure in outcome.failures:
            console.print(
                f"  [yellow]Could not destroy[/] {outcome.secret_id} "
                f"version {failure.version_id}: {failure.reason}"
            )
