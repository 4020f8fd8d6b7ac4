"""
Config wizards -- guided setup and editing of the secrets config.

    msm init            -> projects, service accounts, services, policy
    msm add-service     -> append one service, scaffold its env files
    msm remove-service  -> drop one service (env files are kept)

Existing values are always offered as defaults, so re-running init
on a configured repo only changes what the user types over.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import (
    DEFAULT_ENV_DIR,
    ConfigManager,
    env_dir_of,
    env_file_pattern,
    scaffold_env_files,
    write_config,
)
from .exceptions import ConfigError
from .models import EnvironmentPair, RetentionPolicy, SecretsConfig, ServiceConfig

console = Console()


def _load_existing(path: Path) -> Optional[SecretsConfig]:
    if not path.exists():
        return None
    try:
        config = ConfigManager(path).config
    except ConfigError:
        console.print(
            "  [yellow]Found an existing config but could not parse it. Starting fresh.[/]"
        )
        return None
    console.print("  [dim]Found existing configuration. Current values are shown as defaults.[/]")
    return config


def _prompt_service(taken: list[str], env_dir: str) -> ServiceConfig:
    """Ask for one service until the name is free."""
    while True:
        name = click.prompt("  Service name", default="app").strip()
        if name in taken:
            console.print(f"  [red]Service '{name}' already exists.[/] Choose another name.")
            continue
        break

    target_path = click.prompt(
        "  Target path for downloaded files", default=f"services/{name}/.env"
    )
    secret_prefix = click.prompt(
        "  Secret prefix in Google Cloud", default=f"{name}-env-vars"
    )
    return ServiceConfig(
        name=name,
        env_path=env_file_pattern(env_dir, name),
        target_path=target_path,
        secret_prefix=secret_prefix,
    )


def _prompt_policy(current: RetentionPolicy) -> RetentionPolicy:
    """Ask for the delete policy, re-asking on invalid values."""
    while True:
        max_versions = click.prompt(
            "  Maximum versions to keep (0 = no limit)",
            type=click.IntRange(min=0),
            default=current.max_versions,
        )
        max_age_days = click.prompt(
            "  Maximum age in days (0 = no limit)",
            type=click.IntRange(min=0),
            default=current.max_age_days,
        )
        enabled = click.confirm("  Enable automatic cleanup?", default=current.enabled)
        try:
            return RetentionPolicy(
                max_versions=max_versions, max_age_days=max_age_days, enabled=enabled
            )
        except ValidationError as exc:
            console.print(f"  [red]{exc.errors()[0]['msg']}[/]")


def run_init_wizard(config_path: str) -> SecretsConfig:
    """Interactively create or update the secrets config.

    Args:
        config_path: Where to write the config.

    Returns:
        The config that was written.
    """
    path = Path(config_path)
    console.print()
    console.print(
        Panel(
            "[bold]Monorepo Secrets setup[/]\n\n"
            "This wizard writes your config file and creates the\n"
            "environment files for each service.",
            border_style="cyan",
            padding=(1, 3),
        )
    )
    existing = _load_existing(path)

    console.print("\n  [bold]Google Cloud projects[/]")
    staging_project = click.prompt(
        "  Staging project ID",
        default=existing.project_ids.staging if existing else "my-staging-project",
    )
    production_project = click.prompt(
        "  Production project ID",
        default=existing.project_ids.production if existing else "my-production-project",
    )

    console.print("\n  [bold]Service accounts[/]")
    staging_sa = click.prompt(
        "  Path to staging service account JSON",
        default=(
            existing.service_account_paths.staging
            if existing
            else "firebase/staging/firebase-admin.json"
        ),
    )
    production_sa = click.prompt(
        "  Path to production service account JSON",
        default=(
            existing.service_account_paths.production
            if existing
            else "firebase/production/firebase-admin.json"
        ),
    )

    console.print("\n  [bold]Environment files[/]")
    current_dir = (
        env_dir_of(existing.services[0]) if existing and existing.services else DEFAULT_ENV_DIR
    )
    env_dir = click.prompt("  Environment files directory", default=current_dir)

    console.print("\n  [bold]Services[/]")
    services: list[ServiceConfig] = []
    if existing and existing.services:
        for index, service in enumerate(existing.services, start=1):
            console.print(f"    {index}. [cyan]{service.name}[/] -> {service.target_path}")
        if click.confirm("  Keep existing services and add new ones?", default=True):
            services.extend(existing.services)

    adding = not services or click.confirm("  Add a service?", default=False)
    while adding:
        console.print(f"\n  [dim]--- Service {len(services) + 1} ---[/]")
        services.append(_prompt_service([s.name for s in services], env_dir))
        adding = click.confirm("  Add another service?", default=False)

    console.print("\n  [bold]Delete policy[/]")
    policy = _prompt_policy(
        existing.delete_policy if existing and existing.delete_policy else RetentionPolicy()
    )

    config = SecretsConfig(
        service_account_paths=EnvironmentPair(staging=staging_sa, production=production_sa),
        project_ids=EnvironmentPair(staging=staging_project, production=production_project),
        services=services,
        delete_policy=policy,
    )
    write_config(path, config)

    for service in services:
        for created in scaffold_env_files(env_dir, service.name, with_defaults=True):
            console.print(f"  [green]Created[/] {created}")

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Staging project", staging_project)
    table.add_row("Production project", production_project)
    table.add_row("Environment directory", env_dir)
    table.add_row("Services", ", ".join(s.name for s in services) or "[dim]none[/]")
    table.add_row(
        "Delete policy",
        f"maxVersions={policy.max_versions}, maxAgeDays={policy.max_age_days}, "
        f"enabled={policy.enabled}",
    )
    console.print()
    console.print(Panel(table, title=f"Wrote {path}", border_style="green"))
    console.print(
        "  [dim]Next: edit your env files, then run "
        "[cyan]msm upload <service> --stg[/].[/]\n"
    )
    return config


def run_add_service(config_path: str) -> ServiceConfig:
    """Interactively add one service to an existing config."""
    manager = ConfigManager(config_path)
    services = manager.services
    env_dir = env_dir_of(services[0]) if services else DEFAULT_ENV_DIR

    console.print("\n  [bold]Adding a new service[/]\n")
    service = _prompt_service(manager.service_names, env_dir)
    manager.add_service(service)

    for created in scaffold_env_files(env_dir, service.name):
        console.print(f"  [green]Created[/] {created}")
    console.print(f"\n  [green]Service '{service.name}' added.[/] Config: {manager.path}")
    console.print(
        f"  [dim]Next: msm upload {service.name} --stg / --prod[/]\n"
    )
    return service


def run_remove_service(config_path: str) -> Optional[ServiceConfig]:
    """Interactively remove one service. Returns None when cancelled."""
    manager = ConfigManager(config_path)
    names = manager.service_names
    if not names:
        console.print("  [yellow]No services found in configuration.[/]")
        return None

    console.print("\n  [bold]Remove a service[/]\n")
    for index, name in enumerate(names, start=1):
        console.print(f"    {index}. {name}")
    console.print()

    choice = click.prompt("  Enter service name or number to remove").strip()
    if choice.isdigit() and 1 <= int(choice) <= len(names):
        name = names[int(choice) - 1]
    elif choice in names:
        name = choice
    else:
        console.print("  [red]Invalid service name or number.[/]")
        return None

    if not click.confirm(
        f"  Remove service '{name}'? Environment files are NOT deleted.", default=False
    ):
        console.print("  [dim]Removal cancelled.[/]")
        return None

    removed = manager.remove_service(name)
    console.print(f"  [green]Service '{name}' removed from configuration.[/]")
    return removed
