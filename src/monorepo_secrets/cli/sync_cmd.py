"""Sync commands: upload, download, peek, cleanup."""

from __future__ import annotations

import click

from . import _common
from ._common import (
    console,
    environment_options,
    handle_errors,
    load_config,
    outcome_table,
    print_failures,
    resolve_environment,
    validate_service,
)


def register_sync_commands(main: click.Group) -> None:
    """Register the env file sync commands."""

    @main.command("upload")
    @click.argument("service")
    @environment_options
    @click.pass_context
    @handle_errors
    def upload(ctx, service, stg, prod, override_sa):
        """Upload SERVICE's env file (or 'all') as a new secret version."""
        environment = resolve_environment(stg, prod)
        config = load_config(ctx)
        name = validate_service(config, service)

        results = _common.run_with_manager(
            config, environment, override_sa, lambda m: m.upload(name)
        )

        for result in results:
            verb = "Created" if result.created else "Updated"
            console.print(
                f"  [green]{verb}[/] [cyan]{result.secret_id}[/] "
                f"version {result.version_id}"
            )
            if result.cleanup_error:
                console.print(
                    f"  [yellow]Cleanup skipped:[/] {result.cleanup_error}"
                )
            elif result.cleanup and result.cleanup.marked:
                console.print(
                    f"  [dim]Cleaned up {result.cleanup.destroyed}/"
                    f"{len(result.cleanup.marked)} old version(s)[/]"
                )
                print_failures([result.cleanup])
            console.print(
                f"  [bold green]{result.service}[/] uploaded for {environment.value}"
            )

    @main.command("download")
    @click.argument("service")
    @environment_options
    @click.option(
        "--set",
        "set_target",
        is_flag=True,
        help="Also copy the env file to the service's target path.",
    )
    @click.pass_context
    @handle_errors
    def download(ctx, service, stg, prod, override_sa, set_target):
        """Download the latest env file for SERVICE (or 'all')."""
        environment = resolve_environment(stg, prod)
        config = load_config(ctx)
        name = validate_service(config, service)

        async def _action(manager):
            written = await manager.download(name)
            if set_target:
                written += await manager.set_env(name)
            return written

        written = _common.run_with_manager(config, environment, override_sa, _action)
        for path in written:
            console.print(f"  [green]Wrote[/] {path} for {environment.value}")

    @main.command("peek")
    @click.argument("service")
    @environment_options
    @click.pass_context
    @handle_errors
    def peek(ctx, service, stg, prod, override_sa):
        """Print the latest env file for SERVICE (or 'all')."""
        environment = resolve_environment(stg, prod)
        config = load_config(ctx)
        name = validate_service(config, service)

        results = _common.run_with_manager(
            config, environment, override_sa, lambda m: m.peek(name)
        )
        for result in results:
            console.print(
                f"\n[bold]Environment file for {result.service} in {environment.value}:[/]\n"
            )
            if result.error:
                console.print(f"  [red]Could not read {result.service}:[/] {result.error}")
            elif result.content is None:
                console.print(
                    f"  [dim]No environment file found for {result.service} "
                    f"in {environment.value}.[/]"
                )
            else:
                console.print(result.content, markup=False, highlight=False)
        console.print()

    @main.command("cleanup")
    @click.argument("service")
    @environment_options
    @click.pass_context
    @handle_errors
    def cleanup(ctx, service, stg, prod, override_sa):
        """Destroy old versions of SERVICE's secret (or 'all') per the delete policy."""
        environment = resolve_environment(stg, prod)
        config = load_config(ctx)
        name = validate_service(config, service)

        outcomes = _common.run_with_manager(
            config, environment, override_sa, lambda m: m.cleanup(name)
        )
        console.print()
        console.print(outcome_table(outcomes))
        print_failures(outcomes)
        console.print(f"\n  [green]Completed cleanup for {name} in {environment.value}[/]\n")
