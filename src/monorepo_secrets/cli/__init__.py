"""
Monorepo Secrets CLI — env files in and out of Secret Manager.

The main Click group is defined here and the command groups are
registered from their own modules.

Entry point: monorepo_secrets.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import CONFIG_PATH, __version__


@click.group()
@click.version_option(version=__version__, prog_name="msm")
@click.option(
    "--config",
    "config_path",
    default=CONFIG_PATH,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Secrets config file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Monorepo Secrets — per-service env files in Google Secret Manager.

    Upload, download and peek env files; old versions are pruned
    after every upload according to the delete policy.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .config_cmd import register_config_commands  # noqa: E402
from .sync_cmd import register_sync_commands  # noqa: E402

register_config_commands(main)
register_sync_commands(main)
