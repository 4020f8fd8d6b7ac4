"""Config commands: init, list, add-service, remove-service."""

from __future__ import annotations

import click
from rich.table import Table

from ..wizard import run_add_service, run_init_wizard, run_remove_service
from ._common import console, handle_errors, load_config


def register_config_commands(main: click.Group) -> None:
    """Register the config editing commands."""

    @main.command("init")
    @click.pass_context
    @handle_errors
    def init(ctx):
        """Create or update the secrets config interactively."""
        run_init_wizard(ctx.obj["config_path"])

    @main.command("list")
    @click.pass_context
    @handle_errors
    def list_services(ctx):
        """List the services in the secrets config."""
        config = load_config(ctx)
        if not config.services:
            console.print("\n  [dim]No services configured. Run msm add-service.[/]\n")
            return

        table = Table(title="Services")
        table.add_column("Name", style="cyan")
        table.add_column("Secret")
        table.add_column("Environment file")
        table.add_column("Target")
        for service in config.services:
            table.add_row(
                service.name,
                service.secret_name,
                service.env_path,
                service.target_path,
            )
        console.print()
        console.print(table)
        policy = config.delete_policy
        console.print(
            f"  [dim]Delete policy: maxVersions={policy.max_versions}, "
            f"maxAgeDays={policy.max_age_days}, enabled={policy.enabled}[/]\n"
        )

    @main.command("add-service")
    @click.pass_context
    @handle_errors
    def add_service(ctx):
        """Add a service to the secrets config."""
        run_add_service(ctx.obj["config_path"])

    @main.command("remove-service")
    @click.pass_context
    @handle_errors
    def remove_service(ctx):
        """Remove a service from the secrets config (env files are kept)."""
        run_remove_service(ctx.obj["config_path"])
